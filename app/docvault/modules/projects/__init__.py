"""
Projects module.

A project is the top-level container for documents. Deleting a project
removes its documents and, through them, every stored version.
"""

"""
Documents module (document lifecycle).

Create/update/delete of Markdown documents. Every content mutation consults the
version capture policy before the document row is written, inside one
transaction.
"""

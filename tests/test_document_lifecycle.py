"""Service-level tests for document lifecycle, version capture and restore."""
import pytest

from app.docvault import create_app
from app.docvault.db import session_scope
from app.docvault.models import AuditEvent, Base
from app.docvault.modules.documents.models import Document
from app.docvault.modules.documents.service import (
    DocumentPatch,
    create_document,
    delete_document,
    get_document,
    list_documents,
    update_document,
    validate_document_payload,
)
from app.docvault.modules.projects.service import (
    ProjectPatch,
    create_project,
    delete_project,
    list_projects,
    update_project,
)
from app.docvault.modules.versions.models import Version
from app.docvault.modules.versions.service import (
    create_snapshot,
    delete_version,
    diff_version,
    diff_lines,
    get_version,
    list_versions,
    number_versions,
    restore_version,
)
from app.docvault.store import EntityStore, NotFound


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def store(app):
    with session_scope(app) as s:
        yield EntityStore(s)


@pytest.fixture()
def project(store):
    return create_project(store, name="P")


def _contents(store, document_id):
    return [v.content for v in list_versions(store, document_id)]


def test_create_with_content_captures_exactly_one_version(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="hello")
    assert _contents(store, doc.id) == ["hello"]


def test_create_without_content_captures_nothing(store, project):
    doc = create_document(store, project_id=project.id, title="T")
    assert doc.content == ""
    assert _contents(store, doc.id) == []


def test_create_in_missing_project_raises_not_found(store):
    with pytest.raises(NotFound) as exc:
        create_document(store, project_id=999, title="T", content="x")
    assert exc.value.kind == "Project"
    assert store.list(Document) == []


def test_update_content_captures_prior_value(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    updated = update_document(store, doc.id, DocumentPatch(content="B"))
    assert updated.content == "B"
    versions = list_versions(store, doc.id)
    assert len(versions) == 2
    assert versions[0].content == "A"


def test_update_without_content_field_captures_nothing(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    updated = update_document(store, doc.id, DocumentPatch(title="X"))
    assert updated.title == "X"
    assert updated.content == "A"
    assert _contents(store, doc.id) == ["A"]


def test_first_content_on_update_is_captured_once(store, project):
    doc = create_document(store, project_id=project.id, title="T")
    update_document(store, doc.id, DocumentPatch(content="A"))
    assert _contents(store, doc.id) == ["A"]


def test_clearing_content_preserves_prior_content(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    update_document(store, doc.id, DocumentPatch(content=""))
    assert get_document(store, doc.id).content == ""
    assert _contents(store, doc.id) == ["A", "A"]

    # Setting content again from empty anchors the new content.
    update_document(store, doc.id, DocumentPatch(content="B"))
    assert _contents(store, doc.id) == ["B", "A", "A"]


def test_same_value_update_captures(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    update_document(store, doc.id, DocumentPatch(content="A"))
    assert _contents(store, doc.id) == ["A", "A"]


def test_update_refreshes_updated_at_only(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    created_at, before = doc.created_at, doc.updated_at
    updated = update_document(store, doc.id, DocumentPatch(content="B"))
    assert updated.created_at == created_at
    assert updated.updated_at >= before
    # The captured version and the document share one clock read.
    assert list_versions(store, doc.id)[0].created_at == updated.updated_at


def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFound):
        update_document(store, 123, DocumentPatch(content="x"))
    assert store.list(Version) == []


def test_versions_are_listed_newest_first(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="1")
    update_document(store, doc.id, DocumentPatch(content="2"))
    update_document(store, doc.id, DocumentPatch(content="3"))
    versions = list_versions(store, doc.id)
    assert [v.content for v in versions] == ["2", "1", "1"]
    ids = [v.id for v in versions]
    assert ids == sorted(ids, reverse=True)
    assert [n for n, _ in number_versions(versions)] == [3, 2, 1]


def test_restore_preserves_current_then_overwrites(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    update_document(store, doc.id, DocumentPatch(content="B"))
    target = list_versions(store, doc.id)[-1]
    assert target.content == "A"

    restored = restore_version(store, doc.id, target.id)
    assert restored.content == "A"
    contents = _contents(store, doc.id)
    assert contents[0] == "B"
    assert len(contents) == 3


def test_restore_rejects_version_of_other_document(store, project):
    a = create_document(store, project_id=project.id, title="A", content="a")
    b = create_document(store, project_id=project.id, title="B", content="b")
    foreign = list_versions(store, b.id)[0]
    with pytest.raises(NotFound) as exc:
        restore_version(store, a.id, foreign.id)
    assert exc.value.kind == "Version"
    assert get_document(store, a.id).content == "a"
    assert _contents(store, a.id) == ["a"]


def test_restore_missing_version_raises_not_found(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    with pytest.raises(NotFound):
        restore_version(store, doc.id, 9999)


def test_delete_document_removes_its_versions(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    update_document(store, doc.id, DocumentPatch(content="B"))
    assert delete_document(store, doc.id) is True
    assert store.list(Version, document_id=doc.id) == []
    with pytest.raises(NotFound):
        get_document(store, doc.id)


def test_delete_missing_document_is_idempotent(store):
    assert delete_document(store, 404) is False
    assert delete_document(store, 404) is False


def test_delete_project_cascades(store, project):
    other = create_project(store, name="Other")
    kept = create_document(store, project_id=other.id, title="Keep", content="k")
    for i in range(3):
        d = create_document(store, project_id=project.id, title=f"D{i}", content=f"c{i}")
        update_document(store, d.id, DocumentPatch(content=f"c{i}-2"))

    assert delete_project(store, project.id) is True
    assert store.list(Document, project_id=project.id) == []
    remaining = store.list(Version)
    assert [v.document_id for v in remaining] == [kept.id]
    assert delete_project(store, project.id) is False
    with pytest.raises(NotFound):
        list_documents(store, project.id)


def test_delete_version_allows_removing_last_one(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    only = list_versions(store, doc.id)[0]
    assert delete_version(store, only.id) is True
    assert list_versions(store, doc.id) == []
    assert delete_version(store, only.id) is False
    with pytest.raises(NotFound):
        get_version(store, only.id)


def test_manual_snapshot_does_not_touch_document(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    before = doc.updated_at
    v = create_snapshot(store, document_id=doc.id, content="")
    assert v.content == ""
    assert get_document(store, doc.id).updated_at == before
    assert _contents(store, doc.id) == ["", "A"]
    with pytest.raises(NotFound):
        create_snapshot(store, document_id=999, content="x")


def test_diff_against_live_content(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="a\nb\n")
    update_document(store, doc.id, DocumentPatch(content="a\nc\nd\n"))
    v = list_versions(store, doc.id)[0]
    diff = diff_version(store, v.id)
    assert diff.against_version_id is None
    assert diff.additions == 2
    assert diff.deletions == 1
    assert [(p.value, p.added, p.removed) for p in diff.parts] == [
        ("a\n", False, False),
        ("b\n", False, True),
        ("c\nd\n", True, False),
    ]


def test_diff_against_other_version(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="x\n")
    update_document(store, doc.id, DocumentPatch(content="y\n"))
    update_document(store, doc.id, DocumentPatch(content="z\n"))
    newest, older = list_versions(store, doc.id)[0], list_versions(store, doc.id)[-1]
    diff = diff_version(store, older.id, against_version_id=newest.id)
    assert (diff.additions, diff.deletions) == (1, 1)

    other = create_document(store, project_id=project.id, title="O", content="o")
    with pytest.raises(NotFound):
        diff_version(store, older.id, against_version_id=list_versions(store, other.id)[0].id)


def test_projects_list_newest_first_and_rename(store):
    a = create_project(store, name="A")
    b = create_project(store, name="B")
    assert [p.id for p in list_projects(store)] == [b.id, a.id]

    renamed = update_project(store, a.id, ProjectPatch(name="  A2 "))
    assert renamed.name == "A2"
    assert renamed.updated_at >= renamed.created_at
    with pytest.raises(NotFound):
        update_project(store, 999, ProjectPatch(name="x"))


def test_mutations_are_audited(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    update_document(store, doc.id, DocumentPatch(content="B"))
    v = list_versions(store, doc.id)[-1]
    restore_version(store, doc.id, v.id)

    actions = [e.action for e in store.session.query(AuditEvent).order_by(AuditEvent.id.asc()).all()]
    assert actions == [
        "project.create",
        "version.capture",
        "document.create",
        "version.capture",
        "document.update",
        "version.capture",
        "version.restore",
    ]


def test_end_to_end_scenario(store):
    p = create_project(store, name="P")
    doc = create_document(store, project_id=p.id, title="T", content="v1")
    assert _contents(store, doc.id) == ["v1"]

    doc = update_document(store, doc.id, DocumentPatch(content="v2"))
    assert _contents(store, doc.id) == ["v1", "v1"]
    assert doc.content == "v2"

    update_document(store, doc.id, DocumentPatch(title="T2"))
    assert len(list_versions(store, doc.id)) == 2

    v1 = next(v for v in list_versions(store, doc.id) if v.content == "v1")
    doc = restore_version(store, doc.id, v1.id)
    versions = list_versions(store, doc.id)
    assert len(versions) == 3
    assert versions[0].content == "v2"
    assert doc.content == "v1"
    assert doc.title == "T2"


def test_locked_update_reads_content_committed_by_another_session(app, store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")

    with session_scope(app) as other:
        update_document(EntityStore(other), doc.id, DocumentPatch(content="B"))

    # `store` still caches the document with content "A".
    update_document(store, doc.id, DocumentPatch(content="C"))
    assert _contents(store, doc.id) == ["B", "A", "A"]
    assert get_document(store, doc.id).content == "C"


def test_empty_patch_changes_nothing(store, project):
    doc = create_document(store, project_id=project.id, title="T", content="A")
    before = doc.updated_at

    same = update_document(store, doc.id, DocumentPatch())
    assert same.updated_at == before
    assert _contents(store, doc.id) == ["A"]
    updates = store.session.query(AuditEvent).filter(AuditEvent.action == "document.update").count()
    assert updates == 0

    with pytest.raises(NotFound):
        update_document(store, 999, DocumentPatch())

    renamed_at = project.updated_at
    assert update_project(store, project.id, ProjectPatch()).updated_at == renamed_at
    with pytest.raises(NotFound):
        update_project(store, 999, ProjectPatch())


def test_out_of_range_ids_are_not_found(store, project):
    huge = 2**70
    doc = create_document(store, project_id=project.id, title="T", content="A")

    with pytest.raises(NotFound):
        get_document(store, huge)
    with pytest.raises(NotFound):
        update_document(store, huge, DocumentPatch(content="x"))
    with pytest.raises(NotFound):
        restore_version(store, doc.id, huge)
    with pytest.raises(NotFound):
        create_document(store, project_id=huge, title="T")
    assert list_versions(store, huge) == []
    assert delete_document(store, huge) is False
    assert delete_version(store, huge) is False
    assert delete_project(store, -1) is False


def test_diff_breaks_lines_on_newline_only():
    parts, additions, deletions = diff_lines("a\rb c\nsame\n", "a\rb d\nsame\n")
    assert (additions, deletions) == (1, 1)
    assert [(p.value, p.added, p.removed) for p in parts] == [
        ("a\rb c\n", False, True),
        ("a\rb d\n", True, False),
        ("same\n", False, False),
    ]

    parts, additions, deletions = diff_lines("x", "x\ny")
    assert (additions, deletions) == (2, 1)


def test_title_length_is_checked_after_stripping():
    padded = "  " + "x" * 255 + "  "
    assert validate_document_payload({"project_id": 1, "title": padded}) == []
    assert validate_document_payload({"project_id": 1, "title": "x" * 256}) == [
        "Title must be at most 255 characters."
    ]
    assert validate_document_payload({"project_id": 2**31, "title": "T"}) == [
        "project_id must be a positive integer id."
    ]

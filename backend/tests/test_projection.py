"""
Projection tests.

Verifies:
- Writes flow through the change feed into immutable snapshots
- Resync replaces a collection (reconnect picks up out-of-band changes)
- Default categories are seeded once, only into an empty collection
- A failing consumer does not stop delivery to the others
"""

import threading

import pytest

from stockroom.extensions import db
from stockroom.models import Document
from stockroom.services.document_store import CATEGORIES, PRODUCTS, ChangeBatch, DocumentChange
from stockroom.services.projection import DEFAULT_CATEGORY_NAMES, Projection
from stockroom.services.runtime import inventory


class TestSnapshots:

    def test_writes_reach_the_view(self, make_category):
        before = inventory.view()
        category = make_category("Garden")
        after = inventory.view()

        assert before.get_category(category.id) is None
        assert after.get_category(category.id).name == "Garden"
        assert after.version > before.version

    def test_view_is_read_only(self, make_category):
        make_category("Garden")
        view = inventory.view()
        with pytest.raises(TypeError):
            view.categories["x"] = None

    def test_removed_documents_leave_the_view(self, make_category):
        category = make_category("Garden")
        inventory.store.delete(CATEGORIES, category.id)
        assert inventory.view().get_category(category.id) is None

    def test_reconnect_picks_up_out_of_band_writes(self, db_session):
        inventory.view()
        db.session.add(Document(collection=PRODUCTS, doc_id="external", body={"name": "Imported", "stock": "7"}))
        db.session.commit()

        assert inventory.view().get_product("external") is None
        inventory.reconnect(PRODUCTS)

        product = inventory.view().get_product("external")
        assert product.name == "Imported"
        assert product.stock == 7

    def test_resync_replaces_collection(self, app):
        projection = Projection(inventory.store, seed_defaults=False)
        projection.apply(ChangeBatch(
            collection=PRODUCTS,
            changes=(DocumentChange("added", "p1", {"name": "A"}),),
        ))
        projection.apply(ChangeBatch(collection=PRODUCTS, resync=True, documents=(("p2", {"name": "B"}),)))

        assert list(projection.snapshot().products) == ["p2"]

    def test_legacy_string_category(self, app):
        projection = Projection(inventory.store, seed_defaults=False)
        projection.apply(ChangeBatch(collection=CATEGORIES, resync=True, documents=(("c1", " Legacy "),)))

        category = projection.snapshot().get_category("c1")
        assert category.name == "Legacy"
        assert category.color == "#007bff"

    def test_unknown_reconnect_collection(self, db_session):
        with pytest.raises(ValueError):
            inventory.reconnect("widgets")


class TestWriteOrder:

    def test_older_revision_does_not_overwrite_newer(self, app):
        projection = Projection(inventory.store, seed_defaults=False)
        projection.apply(ChangeBatch(
            collection=CATEGORIES,
            changes=(DocumentChange("modified", "c1", {"name": "Second"}, revision=3),),
        ))
        projection.apply(ChangeBatch(
            collection=CATEGORIES,
            changes=(DocumentChange("modified", "c1", {"name": "First"}, revision=2),),
        ))
        assert projection.snapshot().get_category("c1").name == "Second"

    def test_late_write_does_not_revive_removed_document(self, app):
        projection = Projection(inventory.store, seed_defaults=False)
        projection.apply(ChangeBatch(
            collection=PRODUCTS,
            changes=(DocumentChange("removed", "p1", revision=4),),
        ))
        projection.apply(ChangeBatch(
            collection=PRODUCTS,
            changes=(DocumentChange("modified", "p1", {"name": "Ghost"}, revision=3),),
        ))
        assert projection.snapshot().get_product("p1") is None

    def test_resync_sets_revision_baseline(self, app):
        projection = Projection(inventory.store, seed_defaults=False)
        projection.apply(ChangeBatch(
            collection=PRODUCTS,
            resync=True,
            documents=(("p1", {"name": "Current"}),),
            revisions=(("p1", 5),),
        ))
        projection.apply(ChangeBatch(
            collection=PRODUCTS,
            changes=(DocumentChange("modified", "p1", {"name": "Old"}, revision=5),),
        ))
        assert projection.snapshot().get_product("p1").name == "Current"

    def test_delayed_publish_of_older_write(self, make_category, monkeypatch):
        category = make_category("Garden")
        store = inventory.store
        real_publish = store._publish
        held = []

        def hold_first(batch):
            if not held:
                held.append(batch)
                return
            real_publish(batch)

        monkeypatch.setattr(store, "_publish", hold_first)
        store.update(CATEGORIES, category.id, {"description": "first"})
        store.update(CATEGORIES, category.id, {"description": "second"})
        real_publish(held[0])

        assert store.get(CATEGORIES, category.id)["description"] == "second"
        assert inventory.view().get_category(category.id).description == "second"

    def test_racing_writers_leave_the_newest_write(self, app, make_category, monkeypatch):
        category = make_category("Garden")
        store = inventory.store
        real_publish = store._publish
        committed = threading.Event()
        release = threading.Event()
        errors = []

        def stalled_publish(batch):
            # The first writer stops between its commit and its publish
            if threading.current_thread().name == "first-writer":
                committed.set()
                release.wait(timeout=5)
            real_publish(batch)

        def first_writer():
            with app.app_context():
                try:
                    store.update(CATEGORIES, category.id, {"description": "first"})
                except Exception as exc:
                    errors.append(exc)

        monkeypatch.setattr(store, "_publish", stalled_publish)
        writer = threading.Thread(target=first_writer, name="first-writer")
        writer.start()
        try:
            assert committed.wait(timeout=5)
            store.update(CATEGORIES, category.id, {"description": "second"})
        finally:
            release.set()
            writer.join(timeout=5)

        assert errors == []
        assert store.get(CATEGORIES, category.id)["description"] == "second"
        assert inventory.view().get_category(category.id).description == "second"


class TestConsumers:

    def test_failing_consumer_does_not_block_others(self, db_session, make_category):
        received = []

        def broken(view):
            raise RuntimeError("boom")

        projection = inventory.projection
        projection.add_consumer(broken)
        remove = projection.add_consumer(received.append)

        make_category("Garden")
        assert received
        assert received[-1].category_by_name("Garden") is not None

        remove()
        count = len(received)
        make_category("Tools")
        assert len(received) == count


class TestSeeding:

    @pytest.fixture
    def seeding(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "SEED_DEFAULT_CATEGORIES", True)
        inventory.reset()
        return app

    def test_empty_collection_seeded_once(self, seeding):
        view = inventory.view()
        names = {c.name for c in view.category_list()}
        assert names == set(DEFAULT_CATEGORY_NAMES)

        inventory.reconnect(CATEGORIES)
        assert len(inventory.store.list_documents(CATEGORIES)) == len(DEFAULT_CATEGORY_NAMES)

    def test_existing_categories_not_seeded(self, seeding):
        inventory.store.create(CATEGORIES, {"name": "Garden"})
        inventory.reset()

        assert [c.name for c in inventory.view().category_list()] == ["Garden"]

    def test_seeding_disabled(self, db_session):
        assert inventory.view().category_list() == []

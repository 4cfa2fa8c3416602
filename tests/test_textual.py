"""Tests for modeltrack.textual — Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from contracts import profile, project
from modeltrack import create_store
from modeltrack import textual as mtx


class _MockApp:
    """Minimal mock matching the Textual App interface mtx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


class TestBindValue:
    def test_fires_when_value_changes(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.first_name", effects.append)
        store.model.profile.first_name = "Grace"
        assert effects == ["Grace"]

    def test_skips_unrelated_changes_below_parent(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.first_name", effects.append)
        store.model.profile.bio = "Admiral"
        assert effects == []

    def test_in_place_list_edits_refresh(self):
        app = _MockApp()
        store = create_store(project())
        effects = []
        mtx.bind_value(app, store, "project.tasks", lambda tasks: effects.append(list(tasks)))
        store.model.project.tasks.append("refactor")
        assert effects == [["initial", "refactor"]]

    def test_custom_equality(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(
            app,
            store,
            "profile.first_name",
            effects.append,
            equality=lambda a, b: a.lower() == b.lower(),
        )
        store.model.profile.first_name = "ADA"
        store.model.profile.first_name = "Grace"
        assert effects == ["Grace"]

    def test_fire_immediately(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.last_name", effects.append, fire_immediately=True)
        assert effects == ["Lovelace"]

    def test_exact_ignores_descendants(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile", effects.append, exact=True)
        store.model.profile.bio = "Admiral"
        assert effects == []

    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.first_name", effects.append)
        store.model.profile.first_name = "Grace"
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.first_name", effects.append)
        with mtx.pause(app):
            store.model.profile.first_name = "Grace"
        assert effects == []

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        store = create_store(profile())

        def _raise_nomatch(value):
            raise NoMatches("ProfileCard")

        binding = mtx.bind_value(app, store, "profile.first_name", _raise_nomatch)
        store.model.profile.first_name = "Grace"
        binding.dispose()

    def test_propagates_real_errors(self):
        app = _MockApp()
        store = create_store(profile())

        def _raise_value_error(value):
            raise ValueError("boom")

        mtx.bind_value(app, store, "profile.first_name", _raise_value_error)
        with pytest.raises(ValueError, match="boom"):
            store.model.profile.first_name = "Grace"

    def test_dispose_stops_binding(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        binding = mtx.bind_value(app, store, "profile.first_name", effects.append)
        store.model.profile.first_name = "Grace"
        binding.dispose()
        assert binding.disposed
        store.model.profile.first_name = "Ada"
        assert effects == ["Grace"]
        assert store.subscriber_count("profile.first_name") == 0

    def test_rejects_objects_that_are_not_stores(self):
        app = _MockApp()
        with pytest.raises(TypeError, match="create_store"):
            mtx.bind_value(app, profile(), "profile.first_name", lambda v: None)
        with pytest.raises(TypeError, match="create_store"):
            mtx.bind_model(app, None, lambda v: None)

    def test_thread_marshal(self):
        """Changes made on a background thread use call_from_thread."""
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_value(app, store, "profile.first_name", effects.append)

        def _bg():
            store.model.profile.first_name = "Grace"

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert effects == ["Grace"]
        assert len(app._call_from_thread_log) >= 1


class TestBindSelector:
    def test_fires_only_when_selection_changes(self):
        app = _MockApp()
        store = create_store(profile())
        effects = []
        mtx.bind_selector(
            app,
            store,
            lambda model: f"{model.profile.first_name} {model.profile.last_name}",
            effects.append,
        )
        store.model.profile.bio = "Admiral"
        store.model.profile.first_name = "Grace"
        store.model.profile.last_name = "Hopper"
        assert effects == ["Grace Lovelace", "Grace Hopper"]

    def test_rejects_objects_that_are_not_stores(self):
        app = _MockApp()
        with pytest.raises(TypeError, match="create_store"):
            mtx.bind_selector(app, profile(), lambda model: model, lambda v: None)

    def test_rejects_non_callable(self):
        app = _MockApp()
        store = create_store(profile())
        with pytest.raises(TypeError):
            mtx.bind_selector(app, store, "profile", lambda v: None)


class TestBindModel:
    def test_fires_on_every_change(self):
        app = _MockApp()
        store = create_store(profile())
        seen = []
        mtx.bind_model(app, store, seen.append)
        store.model.profile.bio = "Admiral"
        store.model.profile.bio = "Countess"
        assert len(seen) == 2
        assert seen[0] is store.model


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert mtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with mtx.pause(app):
                assert not mtx.is_safe(app)
                raise RuntimeError("oops")

        assert mtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        app = _MockApp()
        attrs_before = set(vars(app))
        with mtx.pause(app):
            attrs_during = set(vars(app))
        assert attrs_before == attrs_during == set(vars(app))

    def test_multiple_apps_independent(self):
        app_a = _MockApp()
        app_b = _MockApp()
        with mtx.pause(app_a):
            assert not mtx.is_safe(app_a)
            assert mtx.is_safe(app_b)

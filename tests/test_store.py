"""Tests for the result store and the snapshot writer."""

import itertools
import json
import os

import pytest

from fediscover.snapshot import SnapshotWriter
from fediscover.store import Instance, ResultStore


def make_instance(host, **kwargs):
    return Instance(
        url="https://" + host,
        host=host,
        software=kwargs.pop("software", "lemmy"),
        registration_mode=kwargs.pop("registration_mode", "Open"),
        **kwargs,
    )


HOSTS = ["lemmy.world", "beehaw.org", "piefed.social", "lemmy.zip"]


class TestResultStore:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", list(itertools.permutations(HOSTS)))
    async def test_snapshot_sorted_by_host(self, order):
        store = ResultStore()
        for host in order:
            await store.upsert(make_instance(host))
        assert [instance.host for instance in store.snapshot()] == sorted(HOSTS)

    @pytest.mark.asyncio
    async def test_upsert_by_host(self):
        store = ResultStore()
        await store.upsert(make_instance("a.example", registration_mode="Open"))
        await store.upsert(make_instance("a.example", registration_mode="Closed"))
        assert len(store) == 1
        assert "a.example" in store
        assert store.snapshot()[0].registration_mode == "Closed"

    def test_instance_is_immutable(self):
        instance = make_instance("a.example")
        with pytest.raises(AttributeError):
            instance.host = "b.example"

    def test_to_dict(self):
        assert make_instance("a.example").to_dict() == {
            "url": "https://a.example",
            "host": "a.example",
            "software": "lemmy",
            "registrationMode": "Open",
        }
        described = make_instance(
            "b.example", description="Hello", icon="https://b.example/icon.png"
        ).to_dict()
        assert described["description"] == "Hello"
        assert described["icon"] == "https://b.example/icon.png"


class TestSnapshotWriter:
    def test_writes_pretty_and_compact(self, tmp_path):
        writer = SnapshotWriter(str(tmp_path / "out"))
        instances = [make_instance("a.example"), make_instance("b.example")]
        writer.write(instances)

        with open(writer.pretty_path, encoding="utf-8") as pretty_file:
            pretty = pretty_file.read()
        with open(writer.compact_path, encoding="utf-8") as compact_file:
            compact = compact_file.read()

        assert json.loads(pretty) == json.loads(compact)
        assert [entry["host"] for entry in json.loads(pretty)] == [
            "a.example",
            "b.example",
        ]
        assert "\n  " in pretty
        assert "\n" not in compact and ", " not in compact

    def test_rewrite_replaces_content(self, tmp_path):
        writer = SnapshotWriter(str(tmp_path))
        writer.write([make_instance("a.example")])
        writer.write([])
        with open(writer.pretty_path, encoding="utf-8") as pretty_file:
            assert json.load(pretty_file) == []
        assert sorted(os.listdir(tmp_path)) == ["instances.json", "instances.min.json"]

    def test_non_ascii_description(self, tmp_path):
        writer = SnapshotWriter(str(tmp_path))
        writer.write([make_instance("a.example", description="Fédération 🌍")])
        with open(writer.compact_path, encoding="utf-8") as compact_file:
            assert json.load(compact_file)[0]["description"] == "Fédération 🌍"

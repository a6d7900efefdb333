"""Integration test for automatic merging across many capture cycles."""

from __future__ import annotations

from tests.fake_toolchain import build_test_client, source_root


def test_five_captures_merge_down_to_low_water_mark(tmp_path) -> None:
    """High-water 5 and low-water 2 fold bins 1-3 into the seed after five captures."""
    client, toolchain = build_test_client(tmp_path, high_water_mark=5, low_water_mark=2)
    notes = source_root(client.config) / "notes.txt"
    notes.write_text("v0", encoding="utf-8")
    client.backup()
    seed_before = client.config.seed_path.read_text(encoding="utf-8")

    results = []
    for version in range(1, 6):
        notes.write_text(f"v{version}", encoding="utf-8")
        results.append(client.backup())

    assert [result.bin_id for result in results] == [1, 2, 3, 4, 5]
    assert [result.merge is not None for result in results] == [False] * 4 + [True]
    assert results[-1].merge.merged_bin_ids == (1, 2, 3)
    assert client.config.seed_path.read_text(encoding="utf-8") != seed_before
    assert [record.bin_id for record in client.list_bins()] == [4, 5]
    assert sorted(path.name for path in client.config.bins_root.iterdir() if path.name.isdigit()) == [
        "4",
        "5",
    ]
    assert toolchain.mounts.mounted == {}


def test_ids_are_reused_after_merge(tmp_path) -> None:
    """The next capture after a merge takes the lowest freed id."""
    client, _ = build_test_client(tmp_path, high_water_mark=5, low_water_mark=2)
    notes = source_root(client.config) / "notes.txt"
    for version in range(7):
        notes.write_text(f"v{version}", encoding="utf-8")
        client.backup()

    chain = client.list_bins()

    assert [record.bin_id for record in chain] == [4, 5, 1]
    view = client.rollback(0)
    relative_source = source_root(client.config).relative_to("/")
    assert (view.mount_path / relative_source / "notes.txt").read_text(encoding="utf-8") == "v6"
    client.unmount()

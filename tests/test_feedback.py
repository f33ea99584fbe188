"""Tests for the feedback store and adapter."""

import json
import threading

import pytest


def _entries(pattern, useful, noise, skip=0):
    from history_reviewer.models.feedback import FeedbackEntry

    entries = [FeedbackEntry.create("id", "useful", pattern=pattern) for _ in range(useful)]
    entries += [FeedbackEntry.create("id", "noise", pattern=pattern) for _ in range(noise)]
    entries += [FeedbackEntry.create("id", "skip", pattern=pattern) for _ in range(skip)]
    return entries


class TestFeedbackStore:
    """Tests for FeedbackStore."""

    def test_append_and_read(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        store = FeedbackStore(tmp_path / ".history-reviewer")
        store.append(FeedbackEntry.create("f1", "useful"))
        store.append(FeedbackEntry.create("f2", "noise"))

        assert [e.finding_id for e in store.entries()] == ["f1", "f2"]
        assert store.stats() == {"useful": 1, "noise": 1, "skip": 0, "total": 2}

    def test_missing_file_reads_empty(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore

        assert FeedbackStore(tmp_path / "nowhere").entries() == []

    def test_ignores_partial_and_corrupt_lines(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        store = FeedbackStore(tmp_path)
        store.append(FeedbackEntry.create("f1", "useful"))
        with store.feedback_path.open("a") as f:
            f.write("{not json}\n")
            f.write('{"finding_id": "f2", "rating": "noi')

        assert [e.finding_id for e in store.entries()] == ["f1"]

    def test_skips_undecodable_lines(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        store = FeedbackStore(tmp_path)
        store.append(FeedbackEntry.create("f1", "useful"))
        with store.feedback_path.open("ab") as f:
            f.write(b'{"finding_id": "\xff\xfe", "rating": "noise"}\n')
        store.append(FeedbackEntry.create("f2", "noise"))

        assert [e.finding_id for e in store.entries()] == ["f1", "f2"]

    @pytest.mark.parametrize(
        "record",
        [
            {"finding_id": "bad", "rating": "noise", "timestamp": 1700000000},
            {"finding_id": "bad", "rating": "noise", "timestamp": None},
            {"finding_id": "bad", "rating": "noise", "timestamp": "2026-01-01T00:00:00", "pattern": ["x"]},
        ],
    )
    def test_skips_records_with_wrong_field_types(self, tmp_path, record):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        store = FeedbackStore(tmp_path)
        store.append(FeedbackEntry.create("f1", "useful"))
        with store.feedback_path.open("a") as f:
            f.write(json.dumps(record) + "\n")

        assert [e.finding_id for e in store.entries()] == ["f1"]

    def test_record_resolves_pattern_from_catalog(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import Rating
        from history_reviewer.models.findings import Finding, Severity

        finding = Finding(file_path="a.py", line=4, severity=Severity.WARNING, message="`x` may be None")
        store = FeedbackStore(tmp_path)
        store.register_findings([finding], review_id="review-1")

        entry = store.record(finding.id, "negative")

        assert entry.rating is Rating.NOISE
        assert entry.pattern == finding.pattern
        assert store.resolve(finding.id)["review_id"] == "review-1"

    def test_record_unknown_id_has_no_pattern(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore

        entry = FeedbackStore(tmp_path).record("deadbeef", "useful")

        assert entry.pattern is None

    def test_record_rejects_unknown_rating(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore

        store = FeedbackStore(tmp_path)
        with pytest.raises(ValueError):
            store.record("deadbeef", "meh")
        assert not store.feedback_path.exists()

    def test_concurrent_appends_are_not_interleaved(self, tmp_path):
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        def writer(worker):
            store = FeedbackStore(tmp_path)
            for i in range(50):
                store.append(FeedbackEntry.create(f"w{worker}-{i}", "useful", pattern="p" * 200))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = (tmp_path / "feedback.jsonl").read_text().splitlines()
        assert len(lines) == 400
        assert all(json.loads(line)["pattern"] == "p" * 200 for line in lines)

    def test_write_failure_raises_store_error(self, tmp_path):
        from history_reviewer.errors import FeedbackStoreError
        from history_reviewer.feedback import FeedbackStore
        from history_reviewer.models.feedback import FeedbackEntry

        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        with pytest.raises(FeedbackStoreError):
            FeedbackStore(blocker / "sub").append(FeedbackEntry.create("f1", "useful"))


class TestFeedbackAdapter:
    """Tests for FeedbackAdapter."""

    def test_below_min_samples_has_no_effect(self):
        from history_reviewer.feedback import FeedbackAdapter

        bias = FeedbackAdapter(min_samples=3).compute(_entries("p", useful=0, noise=2, skip=5))

        assert bias.thresholds == {}
        assert bias.suppressed == frozenset()

    def test_noisy_pattern_raises_threshold(self):
        from history_reviewer.feedback import FeedbackAdapter

        bias = FeedbackAdapter().compute(_entries("p", useful=2, noise=2), base_threshold=7)

        assert bias.thresholds == {"p": 9}
        assert "p" not in bias.suppressed
        assert bias.noisy_examples == ["p"]

    def test_very_noisy_pattern_is_suppressed(self):
        from history_reviewer.feedback import FeedbackAdapter
        from history_reviewer.models.findings import Finding, Severity

        finding = Finding(file_path="a.py", line=1, severity=Severity.INFO, message="consider adding a docstring")
        bias = FeedbackAdapter().compute(_entries(finding.pattern, useful=0, noise=5))

        assert bias.is_suppressed(finding)
        assert bias.threshold_for(finding) == 9

    def test_threshold_capped_and_never_lowered(self):
        from history_reviewer.feedback import FeedbackAdapter

        noisy = FeedbackAdapter().compute(_entries("p", useful=0, noise=3), base_threshold=9)
        useful = FeedbackAdapter().compute(_entries("q", useful=10, noise=0), base_threshold=7)

        assert noisy.thresholds["p"] == 10
        assert useful.thresholds == {}

    def test_unknown_pattern_uses_base(self):
        from history_reviewer.feedback import FeedbackBias
        from history_reviewer.models.findings import Finding, Severity

        finding = Finding(file_path="a.py", line=1, severity=Severity.BUG, message="anything")

        assert FeedbackBias(base_threshold=6).threshold_for(finding) == 6

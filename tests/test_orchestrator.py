"""Tests for the transcription fan-out."""

import asyncio
import json

import pytest

from fakes import FakeBackend, FakeHost, make_segment
from transcription.backends.types import TranscriptResult
from transcription.config import EngineConfig
from transcription.errors import DocumentWriteError, NetworkError, ServiceError
from transcription.orchestrator import (
    Orchestrator,
    format_timestamp,
    format_transcript,
    splice_transcript,
)
from transcription.process_registry import ProcessRegistry

CONFIG = EngineConfig()
DEBUG_CONFIG = EngineConfig(debug=True)


def result_of(*texts, starts=None):
    starts = starts or [float(i) for i in range(len(texts))]
    return TranscriptResult.from_dict(
        {
            "text": "".join(texts),
            "segments": [make_segment(i, t, s, s + 1) for i, (t, s) in enumerate(zip(texts, starts))],
            "language": "en",
        }
    )


class TestFormatting:
    """Tests for transcript text helpers."""

    def test_segments_trimmed_and_joined(self):
        assert format_transcript(result_of("Hello", " world ")) == "Hello\nworld"

    def test_timestamps_prefix(self):
        result = result_of(" Hi ", "there", starts=[5.4, 65.0])
        assert format_transcript(result, timestamps=True) == "[00:05] Hi\n[01:05] there"

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "00:00"), (59.9, "00:59"), (61, "01:01"), (3600, "01:00:00"), (3725.2, "01:02:05")],
    )
    def test_format_timestamp(self, seconds, expected):
        assert format_timestamp(seconds) == expected

    def test_splice_after_citation(self):
        text = "Intro\n![[a.mp3]]\nOutro"
        assert splice_transcript(text, ["a.mp3"], "Hello\nworld") == (
            "Intro\n![[a.mp3]]\nHello\nworld\nOutro"
        )

    def test_splice_after_last_occurrence(self):
        text = "[[a.mp3]] first\n[[a.mp3]] second"
        assert splice_transcript(text, ["a.mp3"], "T") == "[[a.mp3]] first\n[[a.mp3]]\nT second"

    def test_splice_after_alias_and_heading_forms(self):
        assert splice_transcript("x [[a.mp3|memo]] y", ["a.mp3"], "T") == "x [[a.mp3|memo]]\nT y"
        assert splice_transcript("[[a.mp3#0:30]]", ["a.mp3"], "T") == "[[a.mp3#0:30]]\nT"

    def test_splice_does_not_match_longer_names(self):
        with pytest.raises(DocumentWriteError):
            splice_transcript("[[a.mp3.bak]] [[xa.mp3]]", ["a.mp3"], "T")

    def test_splice_last_citation_across_targets(self):
        text = "[[sub/a.mp3]] mid [[a.mp3]] end"
        assert splice_transcript(text, ["a.mp3", "sub/a.mp3"], "T") == (
            "[[sub/a.mp3]] mid [[a.mp3]]\nT end"
        )

    def test_splice_missing_citation(self):
        with pytest.raises(DocumentWriteError):
            splice_transcript("no links here", ["a.mp3"], "T")


class TestOrchestratorSuccess:
    """Tests for the success path."""

    @pytest.mark.asyncio
    async def test_hello_world_inserted_after_citation(self):
        host = FakeHost(
            documents={"note.md": "Meeting\n![[rec.mp3]]\nEnd"},
            files={"rec.mp3": b"REC"},
            links={"note.md": ["rec.mp3"]},
        )
        backend = FakeBackend({b"REC": result_of("Hello", " world ")})

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        outcomes = await run.wait()

        assert host.documents["note.md"] == "Meeting\n![[rec.mp3]]\nHello\nworld\nEnd"
        assert [o.ok for o in outcomes] == [True]
        assert run.done

    @pytest.mark.asyncio
    async def test_sidecar_written_beside_audio(self):
        result = result_of("Hello", " world ")
        host = FakeHost(
            documents={"note.md": "[[Files/rec.webm]]"},
            files={"Files/rec.webm": b"REC", "Files/rec.json": b"stale"},
            links={"note.md": ["Files/rec.webm"]},
        )

        run = await Orchestrator(host, backend=FakeBackend({b"REC": result})).run("note.md", CONFIG)
        await run.wait()

        sidecar = json.loads(host.files["Files/rec.json"].decode("utf-8"))
        assert TranscriptResult.from_dict(sidecar) == result

    @pytest.mark.asyncio
    async def test_document_reread_at_completion(self):
        host = FakeHost(
            documents={"note.md": "old [[a.mp3]]"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3"]},
        )
        gate = asyncio.Event()
        backend = FakeBackend({b"A": result_of("x")}, gate=gate)

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        await asyncio.sleep(0)
        host.documents["note.md"] = "edited meanwhile [[a.mp3]] tail"
        gate.set()
        await run.wait()

        assert host.documents["note.md"] == "edited meanwhile [[a.mp3]]\nx tail"

    @pytest.mark.asyncio
    async def test_timestamps_option(self):
        host = FakeHost(
            documents={"note.md": "[[a.mp3]]"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3"]},
        )
        backend = FakeBackend({b"A": result_of("one", "two", starts=[0.0, 90.0])})

        run = await Orchestrator(host, backend=backend).run("note.md", EngineConfig(timestamps=True))
        await run.wait()

        assert host.documents["note.md"] == "[[a.mp3]]\n[00:00] one\n[01:30] two"

    @pytest.mark.asyncio
    async def test_falls_back_to_link_as_written(self):
        host = FakeHost(
            documents={"note.md": "see [[sub/a.mp3]]"},
            files={"sub/a.mp3": b"A"},
            links={"note.md": ["sub/a.mp3"]},
        )

        run = await Orchestrator(host, backend=FakeBackend({b"A": result_of("x")})).run(
            "note.md", CONFIG
        )
        await run.wait()

        assert host.documents["note.md"] == "see [[sub/a.mp3]]\nx"

    @pytest.mark.asyncio
    async def test_start_notice(self):
        host = FakeHost(documents={"folder/note.md": ""})

        run = await Orchestrator(host, backend=FakeBackend({})).run("folder/note.md", CONFIG)
        await run.wait()

        assert host.notices == ["Transcribing all audio files in note.md"]

    @pytest.mark.asyncio
    async def test_duplicate_link_transcribed_per_occurrence(self):
        host = FakeHost(
            documents={"note.md": "[[a.mp3]]"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3", "a.mp3"]},
        )
        backend = FakeBackend({b"A": result_of("x")})

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        outcomes = await run.wait()

        assert len(backend.calls) == 2
        assert len(outcomes) == 2
        assert host.documents["note.md"] == "[[a.mp3]]\nx\nx"


class TestOrchestratorConcurrency:
    """Tests for fan-out behaviour."""

    @pytest.mark.asyncio
    async def test_run_returns_before_transcriptions_finish(self):
        host = FakeHost(
            documents={"note.md": "[[a.mp3]]"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3"]},
        )
        gate = asyncio.Event()
        backend = FakeBackend({b"A": result_of("x")}, gate=gate)

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        await asyncio.sleep(0)
        assert not run.done
        assert host.documents["note.md"] == "[[a.mp3]]"

        gate.set()
        outcomes = await run.wait()
        assert run.done
        assert [o.ok for o in outcomes] == [True]

    @pytest.mark.asyncio
    async def test_all_calls_dispatched_concurrently(self):
        files = {f"{i}.mp3": f"{i}".encode() for i in range(5)}
        host = FakeHost(
            documents={"note.md": " ".join(f"[[{name}]]" for name in files)},
            files=files,
            links={"note.md": list(files)},
        )
        gate = asyncio.Event()
        backend = FakeBackend({data: result_of("x") for data in files.values()}, gate=gate)

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        for _ in range(5):
            await asyncio.sleep(0)
        calls_before_release = len(backend.calls)
        gate.set()
        await run.wait()

        assert calls_before_release == 5

    @pytest.mark.asyncio
    async def test_cancel(self):
        host = FakeHost(
            documents={"note.md": "[[a.mp3]]"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3"]},
        )
        backend = FakeBackend({b"A": result_of("x")}, gate=asyncio.Event())

        run = await Orchestrator(host, backend=backend).run("note.md", CONFIG)
        await asyncio.sleep(0)
        run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run.wait()

        assert host.documents["note.md"] == "[[a.mp3]]"

    @pytest.mark.asyncio
    async def test_document_lock_serializes_writes(self):
        files = {f"{i}.mp3": f"{i}".encode() for i in range(4)}
        host = FakeHost(
            documents={"note.md": " ".join(f"[[{name}]]" for name in files)},
            files=files,
            links={"note.md": list(files)},
        )
        backend = FakeBackend({data: result_of(f"t{data.decode()}") for data in files.values()})

        orchestrator = Orchestrator(host, backend=backend, document_lock=asyncio.Lock())
        run = await orchestrator.run("note.md", CONFIG)
        await run.wait()

        assert host.documents["note.md"] == "[[0.mp3]]\nt0 [[1.mp3]]\nt1 [[2.mp3]]\nt2 [[3.mp3]]\nt3"


class TestOrchestratorFailures:
    """A failing file never blocks the others."""

    @staticmethod
    def make_host():
        return FakeHost(
            documents={"note.md": "F: [[f.mp3]]\nG: [[g.mp3]]"},
            files={"f.mp3": b"F", "g.mp3": b"G"},
            links={"note.md": ["f.mp3", "g.mp3"]},
        )

    @staticmethod
    async def run_all(host, backend, config=CONFIG):
        run = await Orchestrator(host, backend=backend).run("note.md", config)
        return await run.wait()

    @pytest.mark.asyncio
    async def test_failure_does_not_block_sibling(self):
        host = self.make_host()
        backend = FakeBackend({b"F": NetworkError("refused"), b"G": result_of("gee")})

        outcomes = await self.run_all(host, backend)

        assert host.documents["note.md"] == "F: [[f.mp3]]\nG: [[g.mp3]]\ngee"
        assert "g.json" in host.files
        assert "f.json" not in host.files
        by_path = {o.reference.path: o for o in outcomes}
        assert isinstance(by_path["f.mp3"].error, NetworkError)
        assert by_path["g.mp3"].ok

    @pytest.mark.asyncio
    async def test_generic_notice_without_debug(self):
        host = self.make_host()
        backend = FakeBackend({b"F": ServiceError("HTTP 500 secret"), b"G": result_of("gee")})

        await self.run_all(host, backend)

        assert host.notices[-1] == "Error transcribing file f.mp3, enable debug mode to see more"
        assert not any("secret" in notice for notice in host.notices)

    @pytest.mark.asyncio
    async def test_detailed_notice_with_debug(self):
        host = self.make_host()
        backend = FakeBackend({b"F": ServiceError("HTTP 500 secret"), b"G": result_of("gee")})

        await self.run_all(host, backend, DEBUG_CONFIG)

        assert "Error transcribing file f.mp3: HTTP 500 secret" in host.notices

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_isolated(self):
        host = self.make_host()
        backend = FakeBackend({b"F": KeyError("boom"), b"G": result_of("gee")})

        outcomes = await self.run_all(host, backend)

        assert sum(o.ok for o in outcomes) == 1
        assert host.documents["note.md"].endswith("[[g.mp3]]\ngee")

    @pytest.mark.asyncio
    async def test_modify_failure_is_document_write_error(self):
        host = self.make_host()
        host.fail_modify = True
        backend = FakeBackend({b"F": result_of("eff"), b"G": result_of("gee")})

        outcomes = await self.run_all(host, backend, DEBUG_CONFIG)

        assert all(isinstance(o.error, DocumentWriteError) for o in outcomes)
        assert len([n for n in host.notices if n.startswith("Error transcribing file")]) == 2

    @pytest.mark.asyncio
    async def test_sidecar_failure_is_document_write_error(self):
        host = self.make_host()
        host.fail_write_binary = True
        backend = FakeBackend({b"F": result_of("eff"), b"G": result_of("gee")})

        outcomes = await self.run_all(host, backend)

        assert all(isinstance(o.error, DocumentWriteError) for o in outcomes)

    @pytest.mark.asyncio
    async def test_missing_citation_reported(self):
        host = FakeHost(
            documents={"note.md": "citation was deleted"},
            files={"a.mp3": b"A"},
            links={"note.md": ["a.mp3"]},
        )
        backend = FakeBackend({b"A": result_of("x")})

        outcomes = await self.run_all(host, backend, DEBUG_CONFIG)

        assert isinstance(outcomes[0].error, DocumentWriteError)
        assert host.documents["note.md"] == "citation was deleted"
        assert "a.json" not in host.files


class TestOrchestratorLifecycle:
    def test_shutdown_terminates_registry(self):
        class Proc:
            pid = 42
            returncode = None
            terminated = False

            def terminate(self):
                self.terminated = True

        registry = ProcessRegistry()
        proc = Proc()
        registry.register(proc)
        orchestrator = Orchestrator(FakeHost(), registry=registry)

        assert orchestrator.shutdown() == 1
        assert proc.terminated
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_backend_selected_from_config(self):
        host = FakeHost(documents={"note.md": ""})
        with pytest.raises(ValueError, match="Unknown transcription backend"):
            await Orchestrator(host).run("note.md", EngineConfig(backend="nope"))

"""
Process lifecycle controller.

`CaptureController` owns at most one sampler and one target for a single
session and walks the state machine IDLE -> SAMPLING -> STOPPING -> DONE
(FAILED on any CaptureError). Signals and child exits are consumed from a
`SignalChannel` by one event loop, so every transition, including the
blocking waits of a stop sequence, happens serially on the main thread.

Whatever the reason for ending, the sampler is asked to stop and is waited for
before an owned target is torn down or reaped, so perf never loses buffered
samples to a vanished target.
"""

from __future__ import annotations

import shutil
import signal
import time
from collections.abc import Callable
from pathlib import Path

from . import console, toolchain
from .config import CaptureConfig
from .errors import CaptureError, SessionInterruptedError, SpawnError
from .model import ArtifactSet, CaptureMode, CaptureOutcome, ControllerState, Session
from .pipeline import run_pipeline
from .process import SamplerHandle, TargetHandle
from .signals import SignalChannel

PipelineFn = Callable[[Path, str, CaptureConfig], ArtifactSet]
TransitionHook = Callable[["CaptureController", ControllerState], None]

BEGIN_SIGNAL = signal.SIGUSR1
END_SIGNAL = signal.SIGUSR2
FORCED_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)

_TERMINAL = (ControllerState.DONE, ControllerState.FAILED)


def _resolve_executable(argv: tuple[str, ...]) -> None:
    if shutil.which(argv[0]) is None:
        raise SpawnError(f"executable not found or not executable: {argv[0]}")


class CaptureController:
    def __init__(
        self,
        session: Session,
        config: CaptureConfig,
        *,
        pipeline: PipelineFn = run_pipeline,
        on_transition: TransitionHook | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.pipeline = pipeline
        self.on_transition = on_transition
        self.state = ControllerState.IDLE
        self.trace: list[str] = []
        self.sampler: SamplerHandle | None = None
        self.target: TargetHandle | None = None
        self.artifacts: ArtifactSet | None = None
        self._target_reaped = False

    # -- bookkeeping -------------------------------------------------------

    def _note(self, event: str) -> None:
        self.trace.append(event)

    def _transition(self, state: ControllerState) -> None:
        if state is self.state:
            return
        self.state = state
        self._note(f"state:{state.value}")
        if self.on_transition is not None:
            self.on_transition(self, state)

    def signals(self) -> tuple[signal.Signals, ...]:
        if self.session.mode is CaptureMode.EXEC_INTERACTIVE:
            return (BEGIN_SIGNAL, END_SIGNAL, *FORCED_STOP_SIGNALS)
        return FORCED_STOP_SIGNALS

    # -- main loop ---------------------------------------------------------

    def run(self) -> CaptureOutcome:
        try:
            with SignalChannel(self.signals()) as channel:
                try:
                    self._start()
                    while self.state not in _TERMINAL:
                        self._reap()
                        if self.state in _TERMINAL:
                            break
                        for signum in channel.receive():
                            self.dispatch(signum)
                            if self.state in _TERMINAL:
                                break
                finally:
                    self._cleanup()

            # Children are gone and the channel is closed: SIGINT/SIGTERM act normally from here.
            if self.session.mode.produces_flamegraph:
                self.artifacts = self.pipeline(self.config.raw_data_path, self.session.mode_tag, self.config)
                self._note("artifacts-generated")
        except CaptureError:
            self._transition(ControllerState.FAILED)
            raise
        return CaptureOutcome(exit_code=0, artifacts=self.artifacts)

    def _start(self) -> None:
        session = self.session
        mode = session.mode

        if mode.attaches:
            assert session.target_pid is not None
            self.target = TargetHandle.attach(session.target_pid)
            argv = toolchain.build_record_pid_argv(
                self.config,
                pid=session.target_pid,
                raw_data=self.config.raw_data_path,
                duration=session.duration if mode is CaptureMode.PID_TIMED else None,
            )
            if mode is CaptureMode.PID_TIMED:
                console.info(f"Recording performance data for PID {session.target_pid} for {session.duration:g} seconds...")
            else:
                console.info(
                    f"Recording performance data for PID {session.target_pid}. Press Ctrl+C to stop recording..."
                )
            self._start_sampler(argv, fresh_data=True)
            return

        assert session.exec_argv is not None
        _resolve_executable(session.exec_argv)

        if mode is CaptureMode.EXEC_RECORD:
            console.info(f"Recording performance data for executable {' '.join(session.exec_argv)}...")
            argv = toolchain.build_record_exec_argv(
                self.config, command=session.exec_argv, raw_data=self.config.raw_data_path
            )
            self._start_sampler(argv, fresh_data=True)
            return

        console.info("Running in interactive mode; only perf stat counter collection is supported.")
        self.target = TargetHandle.launch(session.exec_argv)
        self._note("target-started")

    def _start_sampler(self, argv: list[str], *, fresh_data: bool = False) -> None:
        if fresh_data:
            # A leftover perf.data from an earlier session must never reach the pipeline.
            self.config.raw_data_path.unlink(missing_ok=True)
        self.sampler = SamplerHandle(argv)
        self.sampler.start()
        self._note("sampler-started")
        self._transition(ControllerState.SAMPLING)

    # -- child exits -------------------------------------------------------

    def _reap(self) -> None:
        sampler = self.sampler
        if sampler is not None and sampler.alive and sampler.poll() is not None:
            self._note("sampler-exited")
            self._on_sampler_exit(sampler)
            if self.state in _TERMINAL:
                return

        target = self.target
        if target is not None and target.owned and not self._target_reaped and target.poll() is not None:
            self._on_target_exit()

    def _on_sampler_exit(self, sampler: SamplerHandle) -> None:
        rc = sampler.returncode
        mode = self.session.mode

        if mode is CaptureMode.EXEC_INTERACTIVE:
            target = self.target
            if rc != 0 and target is not None and target.poll() is None:
                raise SpawnError(f"counter sampler exited with status {rc} while PID {target.pid} was still running")
            return

        if mode is CaptureMode.EXEC_RECORD:
            if rc != 0:
                console.warn(f"perf record exited with status {rc}; continuing with recorded samples.")
            self._transition(ControllerState.DONE)
            return

        if rc != 0:
            raise SpawnError(f"sampler failed to record PID {self.session.target_pid} (perf exited with status {rc})")
        self._transition(ControllerState.DONE)

    def _on_target_exit(self) -> None:
        assert self.target is not None
        if self.sampler is not None and self.sampler.alive:
            self._transition(ControllerState.STOPPING)
            self._stop_sampler()
        self._wait_target()
        self._transition(ControllerState.DONE)

    # -- signal dispatch ---------------------------------------------------

    def dispatch(self, signum: int) -> None:
        """Apply one received signal to the state machine."""
        if self.state in _TERMINAL or signum == signal.SIGCHLD:
            return
        if self.session.mode is CaptureMode.EXEC_INTERACTIVE:
            if signum == BEGIN_SIGNAL:
                self._begin_collection()
            elif signum == END_SIGNAL:
                self._end_collection()
            elif signum in FORCED_STOP_SIGNALS:
                self._abort_interactive(signal.Signals(signum))
            return
        if signum in FORCED_STOP_SIGNALS:
            self._stop_recording(signal.Signals(signum))

    def _stop_recording(self, signum: signal.Signals) -> None:
        if self.state is not ControllerState.SAMPLING:
            return
        if signum == signal.SIGINT and self.session.mode is CaptureMode.PID_UNTIL_INTERRUPT:
            console.info("Interrupt received: stopping perf record...")
        else:
            console.info(f"{signum.name} received: stopping perf record early...")
        self._transition(ControllerState.STOPPING)
        self._stop_sampler()
        self._transition(ControllerState.DONE)

    def _begin_collection(self) -> None:
        assert self.target is not None
        if self.sampler is not None:
            console.warn(f"Duplicate {BEGIN_SIGNAL.name} ignored; counter collection already started.")
            return
        console.info(f"{BEGIN_SIGNAL.name} received from PID {self.target.pid}: starting perf stat...")
        if self.config.handshake_delay > 0:
            time.sleep(self.config.handshake_delay)
        self._start_sampler(toolchain.build_stat_argv(self.config, pid=self.target.pid))
        self.target.send_signal(self.config.ack_signal)
        self._note("target-acknowledged")

    def _end_collection(self) -> None:
        assert self.target is not None
        if self.sampler is None:
            console.warn(f"{END_SIGNAL.name} before {BEGIN_SIGNAL.name} ignored; counter collection not started.")
            return
        if self.state is not ControllerState.SAMPLING:
            return
        console.info(f"{END_SIGNAL.name} received from PID {self.target.pid}: stopping perf stat...")
        self._transition(ControllerState.STOPPING)
        self._stop_sampler()
        self._wait_target()
        self._transition(ControllerState.DONE)

    def _abort_interactive(self, signum: signal.Signals) -> None:
        assert self.target is not None
        console.info(f"{signum.name} received: stopping interactive session...")
        self._transition(ControllerState.STOPPING)
        if self.sampler is not None and self.sampler.alive:
            self._stop_sampler()
        if not self._target_reaped:
            self.target.terminate()
            self._wait_target()
        raise SessionInterruptedError(
            f"interrupted by {signum.name} before the collection handshake completed", signum=signum
        )

    # -- teardown ----------------------------------------------------------

    def _stop_sampler(self) -> None:
        assert self.sampler is not None
        self.sampler.request_stop(self.config.stop_signal)
        self._note("sampler-stop-requested")
        self.sampler.wait()
        self._note("sampler-exited")

    def _wait_target(self) -> None:
        assert self.target is not None
        rc = self.target.wait()
        self._target_reaped = True
        self._note("target-exited")
        if rc != 0:
            console.warn(f"target PID {self.target.pid} exited with status {rc}")

    def _cleanup(self) -> None:
        if self.sampler is not None and self.sampler.alive:
            self._stop_sampler()
        target = self.target
        if target is not None and target.owned and not self._target_reaped:
            if target.poll() is None:
                target.terminate()
            self._wait_target()

"""Continuous monitor: watch a source tree and analyze files as they settle."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .ai_auditor import AIAuditor
from .ai_detector import AIDetector, summarize
from .classifier import CodeClassifier, build_classifier
from .config import Settings, get_settings
from .drift import DriftDetector
from .errors import ConfigurationError, StartupError, detach_file_handler, setup_logger
from .learner import find_code_files, is_ignored_dir, load_profile
from .logs import GovernanceLog
from .models import (
    AIDetectionSummary,
    AnalysisResult,
    MonitorStats,
    OrganizationalContext,
    PatternProfile,
    Violation,
)
from .rules import RuleEngine

logger = logging.getLogger(__name__)

# Drift scores below this are reported as an insight
DRIFT_INSIGHT_THRESHOLD = 80

# Event kinds that can change a file's contents
_CHANGE_KINDS = ("created", "modified", "moved")

Scheduler = Callable[..., Any]


class MonitorState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ChangeEvent:
    """A filesystem change handed from the observer thread to the event loop."""

    path: str
    kind: str


class Debouncer:
    """Per-key timers that fire once a key has been quiet for ``delay`` seconds.

    Args:
        delay: Quiet period in seconds
        callback: Called with the key when its timer fires
        scheduler: ``scheduler(delay, fn, *args)`` returning a handle with
            ``cancel()``; defaults to the running loop's ``call_later``
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[str], None],
        scheduler: Optional[Scheduler] = None,
    ):
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._timers: dict[str, Any] = {}

    @property
    def pending(self) -> set[str]:
        return set(self._timers)

    def touch(self, key: str) -> None:
        """Restart the timer for ``key``."""
        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()
        self._timers[key] = self._schedule(self.delay, self._fire, key)

    def _schedule(self, delay: float, fn: Callable[..., None], *args: Any) -> Any:
        if self._scheduler is not None:
            return self._scheduler(delay, fn, *args)
        return asyncio.get_running_loop().call_later(delay, fn, *args)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        self._callback(key)

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()


class _ChangeHandler(FileSystemEventHandler):
    """Forward watchdog events to the monitor's queue on the loop thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[ChangeEvent]"):
        super().__init__()
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_KINDS:
            return
        path = event.dest_path if event.event_type == "moved" else event.src_path
        change = ChangeEvent(path=os.fsdecode(path), kind=event.event_type)
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, change)
        except RuntimeError:
            # Loop already closed during shutdown
            pass


@dataclass
class MonitorContext:
    """Everything one monitor instance owns."""

    settings: Settings
    root: Path
    state: MonitorState = MonitorState.IDLE
    profile: Optional[PatternProfile] = None
    rules_loaded: bool = False
    configured: bool = False
    stats: MonitorStats = field(default_factory=MonitorStats)
    watched_files: set[str] = field(default_factory=set)
    in_flight: dict[str, "asyncio.Task[None]"] = field(default_factory=dict)
    rerun: set[str] = field(default_factory=set)


class ContinuousMonitor:
    """Watch ``settings.watch_directory`` and analyze each settled change.

    Listeners registered with :meth:`on` receive ``started`` (stats),
    ``analysis`` (:class:`AnalysisResult`) and ``stopped`` (stats) events.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        classifier: Optional[CodeClassifier] = None,
        rule_engine: Optional[RuleEngine] = None,
        scheduler: Optional[Scheduler] = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        settings = settings or get_settings()
        root = Path(settings.watch_directory).resolve()
        self.context = MonitorContext(settings=settings, root=root)
        self.classifier = classifier or build_classifier(settings)
        self.detector = AIDetector(self.classifier)
        self.auditor = AIAuditor(self.detector)
        self.rule_engine = rule_engine or RuleEngine(root_dir=root)
        self.drift_detector: Optional[DriftDetector] = None
        self.log = GovernanceLog(root / settings.log_dir, settings.max_log_size)
        # Dot-directories are never watched, on top of the configured names
        self.ignore_patterns = list(settings.ignore_dirs) + [".*"]

        self._scheduler = scheduler
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._queue: Optional[asyncio.Queue[ChangeEvent]] = None
        self._coordinator: Optional[asyncio.Task[None]] = None
        self._debouncer: Optional[Debouncer] = None
        self._listeners: dict[str, list[Callable[[Any], Any]]] = {}

    @property
    def settings(self) -> Settings:
        return self.context.settings

    @property
    def state(self) -> MonitorState:
        return self.context.state

    @property
    def is_running(self) -> bool:
        return self.context.state == MonitorState.RUNNING

    # --- events ----------------------------------------------------------

    def on(self, event: str, callback: Callable[[Any], Any]) -> None:
        """Register ``callback`` for ``started``, ``analysis`` or ``stopped``."""
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str, payload: Any) -> None:
        for callback in self._listeners.get(event, []):
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Listener for {event} failed: {e}", exc_info=True)

    # --- configuration ---------------------------------------------------

    def load_configuration(self) -> None:
        """Load the learned profile and organizational rules, both optional."""
        ctx = self.context
        patterns_path = ctx.root / self.settings.patterns_file
        if patterns_path.exists():
            ctx.profile = load_profile(patterns_path)
        else:
            ctx.profile = None
            logger.info(f"No learned patterns at {patterns_path}; drift detection is off")

        if ctx.profile is not None:
            self.drift_detector = DriftDetector(
                ctx.profile,
                root_dir=ctx.root,
                extensions=self.settings.extensions,
                ignore_patterns=self.ignore_patterns,
            )
            logger.info(f"Loaded patterns from {patterns_path}")
        else:
            self.drift_detector = None

        try:
            self.rule_engine.load(self.settings.rules_file, start_dir=ctx.root)
            ctx.rules_loaded = True
        except ConfigurationError as e:
            logger.warning(f"Organizational rules skipped: {e}")
            ctx.rules_loaded = False

        ctx.configured = True

    def _ensure_configuration(self) -> None:
        if not self.context.configured:
            self.load_configuration()

    # --- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Load configuration, start watching and begin analyzing changes.

        Raises:
            StartupError: If the log directory or the watch root is unusable
        """
        ctx = self.context
        if ctx.state != MonitorState.IDLE:
            logger.warning(f"Monitor is {ctx.state.value}; start ignored")
            return

        ctx.state = MonitorState.STARTING
        logger.info(f"Starting ManasX monitor on {ctx.root}")
        try:
            self.load_configuration()
            self.log.prepare()
            setup_logger(log_file=str(self.log.app_log_path))
            files = self._enumerate_files()

            loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue()
            self._debouncer = Debouncer(
                self.settings.debounce_ms / 1000, self._on_settled, self._scheduler
            )
            self._start_observer(loop, files)
        except (StartupError, OSError) as e:
            self._teardown_observer()
            detach_file_handler(str(self.log.app_log_path))
            ctx.state = MonitorState.IDLE
            if isinstance(e, StartupError):
                raise
            raise StartupError(f"Cannot start monitor on {ctx.root}: {e}") from e

        ctx.watched_files = {str(f) for f in files}
        ctx.stats = MonitorStats(files_watched=len(files), start_time=datetime.now())
        ctx.rerun.clear()
        self._coordinator = asyncio.create_task(self._coordinate())
        ctx.state = MonitorState.RUNNING

        self.log.write_context(
            {
                "event": "monitor_started",
                "timestamp": ctx.stats.start_time.isoformat(),
                "watchDirectory": str(ctx.root),
                "filesWatched": len(files),
                "configuration": {
                    "hasPatterns": ctx.profile is not None,
                    "hasRules": ctx.rules_loaded,
                    "aiDetection": self.settings.enable_ai_detection,
                    "driftDetection": self.settings.enable_drift_detection,
                    "ruleChecking": self.settings.enable_rule_checking,
                },
            }
        )
        logger.info(f"Monitoring {len(files)} files in {ctx.root}")
        self._emit("started", self.get_stats())

    async def stop(self) -> None:
        """Stop watching, finish in-flight analyses and write the session summary."""
        ctx = self.context
        if ctx.state != MonitorState.RUNNING:
            return

        ctx.state = MonitorState.STOPPING
        logger.info("Stopping ManasX monitor")

        if self._debouncer is not None:
            self._debouncer.cancel_all()
        self._teardown_observer()

        if self._coordinator is not None:
            self._coordinator.cancel()
            try:
                await self._coordinator
            except asyncio.CancelledError:
                pass
            self._coordinator = None

        if ctx.in_flight:
            await asyncio.gather(*ctx.in_flight.values(), return_exceptions=True)

        uptime = self.uptime_seconds()
        self.log.write_summary(ctx.stats, uptime)
        self.log.write_context(
            {
                "event": "monitor_stopped",
                "timestamp": datetime.now().isoformat(),
                "duration": round(uptime),
                "stats": ctx.stats.to_json_dict(),
            }
        )
        detach_file_handler(str(self.log.app_log_path))
        ctx.state = MonitorState.IDLE
        logger.info(f"Monitor stopped after {round(uptime)}s")
        self._emit("stopped", ctx.stats.to_json_dict())

    async def close(self) -> None:
        """Stop if running and release the classifier's HTTP client."""
        await self.stop()
        await self.classifier.close()

    def _enumerate_files(self) -> list[Path]:
        root = self.context.root
        try:
            with os.scandir(root):
                pass
        except OSError as e:
            raise StartupError(f"Cannot list watch directory {root}: {e}") from e
        return find_code_files(root, self.settings.extensions, self.ignore_patterns)

    def _start_observer(self, loop: asyncio.AbstractEventLoop, files: list[Path]) -> None:
        handler = _ChangeHandler(loop, self._queue)
        directories = {self.context.root} | {f.parent for f in files}
        observer = self._observer_factory()
        for directory in sorted(directories):
            observer.schedule(handler, str(directory), recursive=False)
        observer.start()
        self._observer = observer
        logger.debug(f"Watching {len(directories)} directories")

    def _teardown_observer(self) -> None:
        if self._observer is None:
            return
        try:
            self._observer.stop()
            self._observer.join(timeout=5)
        except RuntimeError as e:
            logger.warning(f"Error stopping file observer: {e}")
        self._observer = None

    # --- change handling -------------------------------------------------

    async def _coordinate(self) -> None:
        while True:
            event = await self._queue.get()
            self.handle_event(event)

    def is_watchable(self, path: str | Path) -> bool:
        """Whether ``path`` has a watched extension and lies outside ignored directories."""
        path = Path(path)
        if path.suffix not in self.settings.extensions:
            return False
        try:
            relative = path.resolve().relative_to(self.context.root)
        except ValueError:
            return False
        return not any(is_ignored_dir(part, self.ignore_patterns) for part in relative.parts[:-1])

    def handle_event(self, event: ChangeEvent) -> None:
        """Debounce one change; called on the loop thread."""
        if self.context.state != MonitorState.RUNNING or not self.is_watchable(event.path):
            return

        path = str(Path(event.path).resolve())
        if event.kind == "created" and path not in self.context.watched_files:
            self.context.watched_files.add(path)
            self.context.stats.files_watched += 1
        self._debouncer.touch(path)

    def _on_settled(self, path: str) -> None:
        ctx = self.context
        if ctx.state != MonitorState.RUNNING:
            return
        if path in ctx.in_flight:
            ctx.rerun.add(path)
            return
        ctx.in_flight[path] = asyncio.get_running_loop().create_task(self._run_analysis(path))

    async def _run_analysis(self, path: str) -> None:
        ctx = self.context
        try:
            while True:
                try:
                    await self.analyze_file(path)
                except Exception as e:
                    logger.error(f"Analysis of {path} failed: {e}", exc_info=True)
                if path not in ctx.rerun or ctx.state != MonitorState.RUNNING:
                    break
                ctx.rerun.discard(path)
        finally:
            ctx.in_flight.pop(path, None)

    # --- analysis --------------------------------------------------------

    def relative_path(self, path: str | Path) -> str:
        path = Path(path)
        try:
            return path.resolve().relative_to(self.context.root).as_posix()
        except ValueError:
            return path.as_posix()

    async def analyze_file(self, path: str | Path) -> Optional[AnalysisResult]:
        """Analyze one watched file, record the result and emit ``analysis``.

        Returns:
            The analysis, or None when the file is gone, unreadable or not watched
        """
        path = Path(path)
        if not path.is_file() or not self.is_watchable(path):
            return None

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

        stats = self.context.stats
        stats.changes_detected += 1
        result = await self.analyze_content(content, self.relative_path(path))

        stats.violations_found += len(result.violations)
        if result.ai_detection and result.ai_detection.is_likely_ai:
            stats.ai_code_detected += 1

        self.log.write_context(
            {"event": "file_analyzed", **result.to_json_dict(), "summary": result.summary()}
        )
        self.log.write_daily(result)
        self.log.write_violations(result)

        logger.info(
            f"Analyzed {result.file}: {len(result.violations)} violations, "
            f"severity {result.highest_severity().value}"
        )
        self._emit("analysis", result)
        return result

    async def analyze_content(self, content: str, file_path: str) -> AnalysisResult:
        """Run AI detection, drift detection and rules on ``content``.

        Each stage is isolated: a failing stage is logged and contributes nothing.
        Nothing is written to disk and no stats change.
        """
        settings = self.settings
        violations: list[Violation] = []
        insights: list[str] = []
        recommendations: list[str] = []
        ai_detection: Optional[AIDetectionSummary] = None
        drift_score: Optional[int] = None

        if settings.enable_ai_detection:
            try:
                detection = await self.detector.detect(content, file_path)
                ai_detection = summarize(detection)
                if detection.is_likely_ai:
                    insights.append("AI-generated code detected")
                    audit = await self.auditor.audit(
                        content, file_path, detection, self.context.profile
                    )
                    violations.extend(audit.violations)
                    recommendations.extend(audit.recommendations)
            except Exception as e:
                logger.error(f"AI detection failed for {file_path}: {e}", exc_info=True)

        if settings.enable_drift_detection and self.drift_detector is not None:
            try:
                drift = self.drift_detector.analyze_content(content, file_path)
                drift_score = drift.compliance_score
                violations.extend(drift.violations)
                if drift_score < DRIFT_INSIGHT_THRESHOLD:
                    insights.append(f"Code drift detected ({drift_score}/100 compliance)")
            except Exception as e:
                logger.error(f"Drift detection failed for {file_path}: {e}", exc_info=True)

        if settings.enable_rule_checking and self.context.rules_loaded:
            try:
                violations.extend(
                    self.rule_engine.apply_rules(file_path, content, self.context.profile)
                )
            except Exception as e:
                logger.error(f"Rule checking failed for {file_path}: {e}", exc_info=True)

        return AnalysisResult(
            file=file_path,
            violations=violations,
            ai_detection=ai_detection,
            drift_score=drift_score,
            insights=insights,
            recommendations=recommendations,
        )

    # --- queries ---------------------------------------------------------

    def uptime_seconds(self) -> float:
        start_time = self.context.stats.start_time
        if start_time is None:
            return 0.0
        return (datetime.now() - start_time).total_seconds()

    def get_stats(self) -> dict[str, Any]:
        return {
            **self.context.stats.to_json_dict(),
            "isRunning": self.is_running,
            "uptime": self.uptime_seconds() if self.is_running else 0.0,
        }

    def get_recent_analysis(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        return self.log.recent_entries(limit if limit is not None else self.settings.recent_limit)

    def get_organizational_context(self) -> OrganizationalContext:
        """Snapshot of what the monitor knows, for external tooling."""
        self._ensure_configuration()
        profile = self.context.profile
        patterns_summary = None
        if profile is not None:
            patterns_summary = {
                "confidence": profile.confidence.value,
                "naming": profile.recommendations.naming.to_json_dict(),
                "imports": profile.recommendations.imports.to_json_dict(),
            }

        return OrganizationalContext(
            has_learned_patterns=profile is not None,
            has_organizational_rules=self.context.rules_loaded,
            patterns_summary=patterns_summary,
            monitoring_stats=self.get_stats(),
            recent_issues=self.get_recent_analysis(),
        )

    def health(self) -> dict[str, Any]:
        return {
            "healthy": True,
            "monitor": self.context.state.value,
            "timestamp": datetime.now().isoformat(),
        }

    async def check_compliance(self, code: str, filename: str) -> dict[str, Any]:
        """Analyze in-memory ``code`` as if it were ``filename``; nothing is recorded."""
        self._ensure_configuration()
        result = await self.analyze_content(code, filename)
        return {**result.to_json_dict(), "summary": result.summary()}

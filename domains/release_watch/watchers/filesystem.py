"""
File system watcher for release directories.

Watches the configured directories for files that finished writing or were
moved in, and runs the file handler for every file accepted by its path
rule. Control commands (rescan, reload, stop) arrive on a queue, usually
translated from OS signals by ``app.main``.

Events and commands are consumed by two listener threads. Both take the same
lock before touching the configuration or running the handler, so handling
is serialised even though delivery is concurrent.
"""

import queue
import signal
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.models.schemas import WatchConfig
from app.utils.config import get_settings, read_config
from domains.release_watch import rules
from domains.release_watch.errors import (
    ConfigError,
    IncompleteError,
    RuleRejected,
    UnpackError,
)
from domains.release_watch.processors.unpacker import FileHandler
from domains.release_watch.scanners.rescan import rescan


class Command(Enum):
    """Control commands handled by the command listener."""

    RESCAN = "rescan"
    RELOAD = "reload"
    STOP = "stop"


SIGNAL_COMMANDS: Dict[signal.Signals, Command] = {
    signal.SIGUSR1: Command.RESCAN,
    signal.SIGUSR2: Command.RELOAD,
    signal.SIGTERM: Command.STOP,
    signal.SIGINT: Command.STOP,
}


class State(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class ChangeEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards completed file paths to a bounded queue.

    The queue is lossy: when it is full the event is dropped with a warning,
    and a later rescan picks the file up.
    """

    def __init__(self, events: "queue.Queue[Path]"):
        super().__init__()
        self.events = events

    def _push(self, raw_path) -> None:
        path = Path(raw_path if isinstance(raw_path, str) else raw_path.decode())
        try:
            self.events.put_nowait(path)
        except queue.Full:
            logger.warning(f"Event queue full, dropping event: {path}")

    def on_closed(self, event: FileSystemEvent) -> None:
        """Queue files closed after writing."""
        if event.is_directory:
            return
        self._push(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Queue files moved into a watched tree."""
        if event.is_directory:
            return
        dest = getattr(event, "dest_path", None)
        if dest:
            self._push(dest)


class Notifier:
    """Change notification subscriptions backed by a watchdog observer."""

    def __init__(self, handler: FileSystemEventHandler):
        self.handler = handler
        self.observer = Observer()
        self.watches = []

    def subscribe(self, path: Path, recursive: bool = True) -> None:
        self.watches.append(self.observer.schedule(self.handler, str(path), recursive=recursive))

    def unsubscribe_all(self) -> None:
        self.observer.unschedule_all()
        self.watches = []

    def start(self) -> None:
        self.observer.daemon = True
        self.observer.start()

    def stop(self) -> None:
        self.observer.stop()
        self.observer.join()


class Watcher:
    """Release directory watcher and its control loop.

    Lifecycle is IDLE -> RUNNING -> STOPPED; a stopped watcher cannot be
    started again. Calling ``stop`` concurrently from several threads is the
    caller's responsibility to serialise.
    """

    def __init__(
        self,
        config: WatchConfig,
        handler: FileHandler,
        notifier: Optional[Notifier] = None,
        config_loader: Callable[[Path], WatchConfig] = read_config,
        poll_interval: Optional[float] = None,
    ):
        """
        Initialize watcher.

        Args:
            config: Initial configuration
            handler: Action run for every accepted file
            notifier: Change notification source, watchdog based by default
            config_loader: Reads the configuration again on reload
            poll_interval: Seconds between stop checks while listeners are idle
        """
        self.config = config
        self.handler = handler
        self.events: "queue.Queue[Path]" = queue.Queue(maxsize=config.buffer_size)
        self.commands: "queue.Queue[Command]" = queue.Queue()
        self.notifier = notifier if notifier is not None else Notifier(ChangeEventHandler(self.events))
        self.config_loader = config_loader
        self.poll_interval = poll_interval if poll_interval is not None else get_settings().poll_interval
        self.lock = threading.Lock()
        self.done = threading.Event()
        self.state = State.IDLE
        self._threads: List[threading.Thread] = []

    # Event handling -------------------------------------------------------------------

    def handle(self, path: Path) -> None:
        """
        Run the decision pipeline for one changed file. Caller holds the lock.

        Raises:
            RuleRejected: If no rule covers the path or the rule rejects it
            UnpackError: If the file handler fails
        """
        path = Path(path)
        rule = self.config.find_path(path)
        if rule is None:
            raise RuleRejected(f"no configured path found: {path}")
        rules.check(rule, path)
        self.handler.on_file(path, rule)

    def _handle_logged(self, path: Path) -> None:
        try:
            self.handle(path)
        except RuleRejected as e:
            logger.debug(f"Skipping event: {e}")
        except IncompleteError as e:
            logger.info(f"Skipping event: {e}")
        except UnpackError as e:
            logger.error(f"Skipping event: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error handling {path}: {e}")

    # Subscriptions --------------------------------------------------------------------

    def watch(self) -> None:
        """Subscribe to every configured path. A failing path does not stop the others."""
        for rule in self.config.paths:
            try:
                self.notifier.subscribe(rule.name, recursive=True)
                logger.success(f"Watching {rule.name} recursively")
            except Exception as e:
                logger.error(f"Failed to watch {rule.name}: {e}")

    def reload(self) -> None:
        """Re-read the configuration and resubscribe. Keeps the old one on failure.

        The event queue keeps the capacity it was created with; a changed
        ``BufferSize`` takes effect on restart and is logged as ignored.
        """
        filename = self.config.filename
        if filename is None:
            logger.error("Failed to read config: configuration has no source file")
            return
        try:
            cfg = self.config_loader(filename)
        except ConfigError as e:
            logger.error(f"Failed to read config: {e}")
            return
        if cfg.buffer_size != self.events.maxsize:
            logger.warning(
                f"Ignoring BufferSize={cfg.buffer_size} until restart, "
                f"event queue keeps capacity {self.events.maxsize}"
            )
        self.notifier.unsubscribe_all()
        self.config = cfg
        self.watch()
        logger.info(f"Reloaded configuration from {filename}")

    def rescan(self) -> None:
        rescan([rule.name for rule in self.config.paths], self.handle)

    # Listeners ------------------------------------------------------------------------

    def _read_commands(self) -> None:
        while not self.done.is_set():
            try:
                command = self.commands.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            with self.lock:
                if command is Command.RESCAN:
                    logger.info("Rescanning watched directories")
                    self.rescan()
                elif command is Command.RELOAD:
                    logger.info("Reloading configuration")
                    self.reload()
                elif command is Command.STOP:
                    logger.info("Shutting down")
                    self._shutdown()

    def _read_events(self) -> None:
        while not self.done.is_set():
            try:
                path = self.events.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            with self.lock:
                if self.done.is_set():
                    return
                self._handle_logged(path)

    def _shutdown(self) -> None:
        try:
            self.notifier.unsubscribe_all()
            self.notifier.stop()
        except Exception as e:
            logger.error(f"Failed to stop notifications: {e}")
        self.state = State.STOPPED
        self.done.set()

    # Lifecycle ------------------------------------------------------------------------

    def send(self, command: Command) -> None:
        self.commands.put(command)

    def on_signal(self, signum, frame=None) -> None:
        """OS signal handler: translates the signal into a command.

        Only enqueues. Logging happens when the command listener takes the
        command, since loguru's handler lock is not re-entrant.
        """
        command = SIGNAL_COMMANDS.get(signal.Signals(signum))
        if command is not None:
            self.send(command)

    def start(self) -> None:
        """Subscribe to configured paths and start both listeners."""
        if self.state is not State.IDLE:
            raise RuntimeError(f"watcher cannot start from state {self.state.value}")
        self.state = State.RUNNING
        with self.lock:
            self.watch()
        self.notifier.start()
        for target, name in ((self._read_commands, "commands"), (self._read_events, "events")):
            thread = threading.Thread(target=target, name=f"watcher-{name}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def join(self) -> None:
        """Block until both listeners finish, staying responsive to signals."""
        for thread in self._threads:
            while thread.is_alive():
                thread.join(self.poll_interval)

    def run(self) -> None:
        self.start()
        self.join()

    def stop(self) -> None:
        self.send(Command.STOP)

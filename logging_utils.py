"""
Phase Logging for the Interview Prep LLM Engine
===============================================

Colored, phase-framed logging for one generation request.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Phase constants for the generation pipeline"""
    GENERATION = "DOCUMENT_GENERATION"
    PARSING = "RESPONSE_PARSING"
    FAILOVER = "MODEL_FAILOVER"
    POSTPROCESS = "POST_PROCESSING"
    COMPLETION = "COMPLETION"


PHASE_COLORS = {
    Phase.GENERATION: Fore.GREEN,
    Phase.PARSING: Fore.BLUE,
    Phase.FAILOVER: Fore.RED,
    Phase.POSTPROCESS: Fore.MAGENTA,
    Phase.COMPLETION: Fore.GREEN + Style.BRIGHT,
}

# Text-based icons, no emojis
PHASE_ICONS = {
    Phase.GENERATION: "[GEN]",
    Phase.PARSING: "[PRS]",
    Phase.FAILOVER: "[FOV]",
    Phase.POSTPROCESS: "[PST]",
    Phase.COMPLETION: "[OK ]",
}


class TimingTracker:
    """Track timing for phases"""

    def __init__(self):
        self._timings: Dict[str, float] = {}
        self._start_times: Dict[str, float] = {}

    def start(self, key: str):
        self._start_times[key] = time.time()

    def end(self, key: str) -> float:
        """End timing and return elapsed seconds"""
        if key not in self._start_times:
            return 0.0
        elapsed = time.time() - self._start_times.pop(key)
        self._timings[key] = elapsed
        return elapsed

    def get_all(self) -> Dict[str, float]:
        return self._timings.copy()


class PhaseLogger:
    """
    Logger scoped to one generation request

    Usage:
        phase_logger = create_phase_logger(request_id, label="course guide")

        with phase_logger.phase(Phase.GENERATION, sub_label="attempt 1/4"):
            phase_logger.log_prompt(model, system_prompt, user_prompt)
            ...
            phase_logger.log_attempt(1, 4, succeeded=False, reason="Likely truncated JSON")
    """

    def __init__(
        self,
        request_id: str,
        label: str = "",
        extra_verbose: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.request_id = request_id
        self.label = label
        self.extra_verbose = extra_verbose
        self.logger = logger or logging.getLogger(__name__)
        self.timing_tracker = TimingTracker()
        self._current_phase: Optional[str] = None
        self._phase_stack: List[Optional[str]] = []

    @contextmanager
    def phase(self, phase_name: str, sub_label: Optional[str] = None):
        """Context manager for phase tracking with automatic timing"""
        self._phase_stack.append(self._current_phase)
        self._current_phase = phase_name
        timing_key = f"{phase_name}_{len(self._phase_stack)}"
        self.timing_tracker.start(timing_key)
        self._print_phase_header(phase_name, sub_label)
        try:
            yield self
        finally:
            elapsed = self.timing_tracker.end(timing_key)
            self._print_phase_footer(phase_name, elapsed)
            self._current_phase = self._phase_stack.pop() if self._phase_stack else None

    def _prefix(self) -> str:
        return f"[{self.request_id[:8]}]"

    def _print_phase_header(self, phase_name: str, sub_label: Optional[str] = None):
        color = PHASE_COLORS.get(phase_name, Fore.WHITE)
        icon = PHASE_ICONS.get(phase_name, "[???]")
        timestamp = datetime.now().strftime("%H:%M:%S")
        sub_str = f" - {sub_label}" if sub_label else ""
        label_str = f" ({self.label})" if self.label else ""
        self.logger.info(
            f"{color}{icon} {self._prefix()} {phase_name}{label_str}{sub_str} [{timestamp}]{Style.RESET_ALL}"
        )

    def _print_phase_footer(self, phase_name: str, elapsed: float):
        color = PHASE_COLORS.get(phase_name, Fore.WHITE)
        icon = PHASE_ICONS.get(phase_name, "[???]")
        elapsed_str = f"{elapsed:.2f}s" if elapsed > 0 else "N/A"
        self.logger.info(f"{color}{icon} {self._prefix()} {phase_name} done ({elapsed_str}){Style.RESET_ALL}")

    def info(self, message: str):
        """Log info message with current phase context"""
        if self._current_phase:
            color = PHASE_COLORS.get(self._current_phase, Fore.WHITE)
            icon = PHASE_ICONS.get(self._current_phase, "[???]")
            self.logger.info(f"{color}{icon}{Style.RESET_ALL} {self._prefix()} {message}")
        else:
            self.logger.info(f"{self._prefix()} {message}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] {self._prefix()} {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] {self._prefix()} {message}{Style.RESET_ALL}")

    def log_prompt(self, model: str, system_prompt: str, user_prompt: str, **kwargs):
        """Log the full prompt (only if extra_verbose)"""
        if not self.extra_verbose:
            return
        separator = "~" * 60
        self.logger.info(separator)
        self.logger.info(f"{Fore.CYAN}[EXTRA_VERBOSE] PROMPT ({model}){Style.RESET_ALL}")
        self.logger.info(f"{Fore.CYAN}[SYSTEM PROMPT]{Style.RESET_ALL}")
        self.logger.info(system_prompt)
        self.logger.info(f"{Fore.GREEN}[USER PROMPT]{Style.RESET_ALL}")
        self.logger.info(user_prompt)
        for key, value in kwargs.items():
            self.logger.info(f"  {key}: {value}")
        self.logger.info(separator)

    def log_response(self, response: str):
        """Log the raw model output (only if extra_verbose)"""
        if not self.extra_verbose:
            return
        separator = "~" * 60
        self.logger.info(separator)
        self.logger.info(f"{Fore.GREEN}[EXTRA_VERBOSE] RAW RESPONSE{Style.RESET_ALL}")
        self.logger.info(response)
        self.logger.info(separator)

    def log_attempt(self, step: int, total: int, succeeded: bool, reason: Optional[str] = None):
        """Log the outcome of one ladder step"""
        if succeeded:
            self.info(f"{Fore.GREEN}[+]{Style.RESET_ALL} attempt {step}/{total} produced a valid document")
            return
        reason_str = f": {reason}" if reason else ""
        self.warning(f"attempt {step}/{total} failed{reason_str}")

    def log_timing_summary(self):
        """Log timing summary for all phases (only if extra_verbose)"""
        if not self.extra_verbose:
            return
        total_time = 0.0
        for key, elapsed in sorted(self.timing_tracker.get_all().items()):
            phase_name = key.rsplit("_", 1)[0]
            color = PHASE_COLORS.get(phase_name, Fore.WHITE)
            self.logger.info(f"{color}{phase_name:30s} {elapsed:8.2f}s{Style.RESET_ALL}")
            total_time += elapsed
        self.logger.info(f"{Fore.WHITE}{Style.BRIGHT}TOTAL TIME: {total_time:.2f}s{Style.RESET_ALL}")


def create_phase_logger(request_id: str, label: str = "", extra_verbose: bool = False) -> PhaseLogger:
    """Create a new PhaseLogger instance"""
    return PhaseLogger(request_id=request_id, label=label, extra_verbose=extra_verbose)

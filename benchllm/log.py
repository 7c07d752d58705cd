"""
Structured logging and error categorization for benchmark runs.

All output goes to stderr so that console reports on stdout stay clean.

Usage:
    from benchllm.log import Logger

    log = Logger(verbose=True)
    log.info("Running prompt-chaining/multi-agent...")
    log.trace("Metrics: 3 calls, 1200 tokens")
    log.error("Judge unavailable", recovery=["Check GEMINI_API_KEY"])
"""

import json
import sys
from datetime import datetime, timezone

from .errors import ConfigError, ConstructionError, EmptyContentError, SignatureError

RESET = '\033[0m'

# level -> (label, ANSI style)
LEVELS = {
    'error': ('[ERROR]', '\033[31m'),
    'warn': ('[WARN]', '\033[33m'),
    'info': ('[INFO]', '\033[2m'),
    'ok': ('[OK]', '\033[32m'),
    'trace': ('  [TRACE]', '\033[2m'),
}


def _is_tty(stream) -> bool:
    isatty = getattr(stream, 'isatty', None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # closed stream
        return False


class Logger:
    """Structured logger - all output to stderr."""

    def __init__(self, json_mode=False, verbose=False, stream=None):
        self.json_mode = json_mode
        self.verbose = verbose
        self._stream = stream

    @property
    def stream(self):
        # Resolved lazily so pytest's capsys sees the writes
        return self._stream if self._stream is not None else sys.stderr

    def _paint(self, text, style):
        return f'{style}{text}{RESET}' if _is_tty(self.stream) else text

    def _write(self, level, message, meta=None):
        out = self.stream
        meta = {k: v for k, v in (meta or {}).items() if v is not None}

        if self.json_mode:
            entry = {'level': level, 'message': message, **meta}
            entry['timestamp'] = datetime.now(timezone.utc).isoformat()
            print(json.dumps(entry, default=str), file=out)
            return

        label, style = LEVELS.get(level, (f'[{level.upper()}]', ''))
        parts = [self._paint(label, style)]
        if meta.get('candidate'):
            parts.append(self._paint(f"({meta['candidate']})", '\033[2m'))
        parts.append(message)
        print(' '.join(parts), file=out)

        for step in meta.get('recovery') or ():
            print(f'  -> {step}', file=out)

    def info(self, message, **meta):
        self._write('info', message, meta)

    def ok(self, message, **meta):
        self._write('ok', message, meta)

    def warn(self, message, **meta):
        self._write('warn', message, meta)

    def error(self, message, **meta):
        self._write('error', message, meta)

    def trace(self, message, **meta):
        if self.verbose:
            self._write('trace', message, meta)


# Exception type -> (error type, category, retryable). First isinstance match wins.
TYPE_RULES = (
    (ConstructionError, 'construction_error', 'candidate', False),
    (SignatureError, 'signature_error', 'candidate', False),
    (EmptyContentError, 'empty_content', 'candidate', False),
    (ConfigError, 'config_error', 'config', False),
    (ConnectionError, 'network_error', 'network', True),
    (TimeoutError, 'timeout', 'network', True),
    (FileNotFoundError, 'filesystem_error', 'system', False),
    (PermissionError, 'permission_error', 'system', False),
    (ValueError, 'parse_error', 'data', False),
)

# Provider SDKs mostly raise generic exceptions, so fall back to the message.
MESSAGE_RULES = (
    (('401', '403', 'unauthorized', 'forbidden', 'api key', 'authentication failed', 'permission denied'),
     'auth_failure', 'auth', False),
    (('429', 'rate limit', 'too many requests', 'resource exhausted', 'resource_exhausted', 'quota'),
     'rate_limit', 'throttle', True),
    (('timeout', 'timed out', 'deadline exceeded'), 'timeout', 'network', True),
    (('connection', 'econnrefused', 'enotfound', 'network'), 'network_error', 'network', True),
    (('404', 'not found'), 'not_found', 'client', False),
    (('500', '502', '503', 'server error', 'unavailable'), 'server_error', 'server', True),
)


def categorize_error(err):
    """Categorize an exception into type, category and retryability."""
    for exc_type, error_type, category, retryable in TYPE_RULES:
        if isinstance(err, exc_type):
            return {'type': error_type, 'category': category, 'retryable': retryable}

    msg = str(err).lower()
    for needles, error_type, category, retryable in MESSAGE_RULES:
        if any(n in msg for n in needles):
            return {'type': error_type, 'category': category, 'retryable': retryable}

    return {'type': 'unknown_error', 'category': 'unknown', 'retryable': False}


RECOVERY_GUIDANCE = {
    'construction_error': ['Check the benchmark class can be created without arguments'],
    'signature_error': ['Candidates take () or (prompt: str) and return str or BenchmarkOutput'],
    'empty_content': ['Check the pipeline produced a final answer'],
    'config_error': ['Check the settings file and command line flags'],
    'auth_failure': ['Check the judge API key (GEMINI_API_KEY or GOOGLE_API_KEY)'],
    'rate_limit': ['Wait 60 seconds before retrying', 'Reduce the number of candidates per run'],
    'timeout': ['Retry the run', 'Check provider status'],
    'network_error': ['Check internet connection', 'Verify DNS resolution'],
    'not_found': ['Verify the model name is correct'],
    'filesystem_error': ['Check the artifacts directory exists and is writable'],
    'parse_error': ['Check the input data format'],
}


def get_recovery(error_type):
    """Get recovery guidance for an error type."""
    return RECOVERY_GUIDANCE.get(error_type, ['Check error details and retry'])


default_logger = Logger()

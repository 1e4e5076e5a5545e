"""External probe operations executed once per tick."""
import logging
import shlex
import subprocess
import time

logger = logging.getLogger("chainwatch.probes")


class ProbeError(Exception):
    """A probe operation failed or timed out."""

    def __init__(self, message, probe=None):
        super().__init__(message)
        self.probe = probe


class CommandProbe:
    """Run an external CLI command; success is a zero exit status within the timeout."""

    def __init__(self, name, command, timeout=10.0, context=None, runner=subprocess.run):
        self.name = name
        self.command = command
        self.timeout = timeout
        self.context = dict(context or {})
        self.runner = runner

    def argv(self):
        values = dict(self.context, stamp=str(int(time.time() * 1000)))
        return shlex.split(self.command.format(**values))

    def run(self):
        args = self.argv()
        try:
            self.runner(args, capture_output=True, text=True, timeout=self.timeout, check=True)
        except subprocess.TimeoutExpired:
            raise ProbeError(f"{self.name} timed out after {self.timeout}s", self.name) from None
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip().splitlines()
            reason = detail[-1] if detail else f"exit status {e.returncode}"
            raise ProbeError(f"{self.name} failed: {reason}", self.name) from None
        except OSError as e:
            raise ProbeError(f"{self.name} could not start {args[0]}: {e}", self.name) from None

    def __repr__(self):
        return f"CommandProbe({self.name!r}, timeout={self.timeout})"


def build_probes(settings):
    """Probe battery from settings, in configured order."""
    context = {
        "network": settings.network,
        "program_id": settings.program_id,
        "rpc_url": settings.rpc_url,
    }
    return [CommandProbe(p.name, p.command, p.timeout, context) for p in settings.probes]

from colorama import init as colorama_init, Fore, Style
from datetime import datetime

from logicscan.core.models import Severity
colorama_init(autoreset=True)

SEV_COLORS = {
    Severity.CRITICAL: Fore.RED + Style.BRIGHT,
    Severity.HIGH: Fore.RED,
    Severity.MEDIUM: Fore.YELLOW,
    Severity.LOW: Fore.GREEN,
    Severity.INFO: Fore.CYAN,
}


class Log:
    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def info(self, msg: str):
        if self.verbose >= 1:
            print(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            print(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def error(self, msg: str):
        print(f"{self._fmt('ERROR', Fore.RED)} {msg}")

    def ok(self, msg: str):
        print(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        print(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            print(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, f):
        col = SEV_COLORS.get(f.severity, Fore.WHITE)
        param = f" {self.PAY}{f.parameter}{Style.RESET_ALL}" if f.parameter else ""
        print(f"{self._fmt(f.severity.name, col)} {f.module}: {f.name}{param} "
              f"{Style.DIM}[{f.confidence.name}] {f.url}{Style.RESET_ALL}")
        if self.verbose >= 2 and f.detail:
            print(f"    {f.detail}")
        if self.verbose >= 2 and f.cve_refs:
            print(f"    {Style.DIM}{f.cve_string}{Style.RESET_ALL}")

    def summary(self, ledger):
        counts = ", ".join(f"{SEV_COLORS[s]}{s.name}{Style.RESET_ALL}={ledger.count_by_severity(s)}"
                           for s in sorted(Severity, reverse=True))
        self.info(f"{ledger.size()} finding(s): {counts}")

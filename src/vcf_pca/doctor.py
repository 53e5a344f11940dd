"""System dependency checker for vcf-pca."""

import importlib
import platform
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path


@dataclass
class CheckResult:
    """Result of a dependency check."""

    name: str
    passed: bool
    version: str | None = None
    message: str | None = None


_CHECK_VCF = (
    "##fileformat=VCFv4.2\n"
    "##FORMAT=<ID=GT,Number=1,Type=String,Description=\"Genotype\">\n"
    "##contig=<ID=1>\n"
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tS1\n"
    "1\t10\t.\tA\tG\t.\t.\t.\tGT\t0/1\n"
)

INSTALL_INSTRUCTIONS = {
    "python": {
        "darwin": "brew install python@3.11",
        "linux": "sudo apt install python3.11 or use pyenv",
        "windows": "Download from https://www.python.org/downloads/",
    },
    "htslib": {
        "darwin": "brew install htslib",
        "linux": "sudo apt install tabix",
        "windows": "Use WSL and install tabix",
    },
}


class DependencyChecker:
    """Check system dependencies for vcf-pca."""

    def check_python(self) -> CheckResult:
        """Check Python version is 3.11+."""
        version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        passed = sys.version_info >= (3, 11)

        return CheckResult(
            name="Python",
            passed=passed,
            version=version,
            message=None if passed else "Python 3.11+ required",
        )

    def _check_module(self, module: str, install_hint: str) -> CheckResult:
        try:
            mod = importlib.import_module(module)
            version = getattr(mod, "__version__", "unknown")
            return CheckResult(name=module, passed=True, version=version)
        except ImportError:
            return CheckResult(
                name=module,
                passed=False,
                message=f"{module} not installed. Install with: {install_hint}",
            )

    def check_cyvcf2(self) -> CheckResult:
        """Check if cyvcf2 is installed."""
        return self._check_module("cyvcf2", "pip install cyvcf2")

    def check_numpy(self) -> CheckResult:
        """Check if numpy is installed."""
        return self._check_module("numpy", "pip install numpy")

    def check_lapack(self) -> CheckResult:
        """Check that numpy can run a small SVD."""
        try:
            import numpy as np
        except ImportError:
            return CheckResult(name="LAPACK", passed=False, message="numpy not installed")

        try:
            np.linalg.svd(np.eye(3))
            return CheckResult(name="LAPACK", passed=True, version="available")
        except np.linalg.LinAlgError as e:
            return CheckResult(name="LAPACK", passed=False, message=f"SVD unavailable: {e}")

    def check_htslib(self) -> CheckResult:
        """Check that htslib, through cyvcf2, can decode a genotype record."""
        try:
            from cyvcf2 import VCF
        except ImportError:
            return CheckResult(name="htslib", passed=False, message="cyvcf2 not installed")

        with tempfile.TemporaryDirectory() as tmp:
            check_file = Path(tmp) / "check.vcf"
            check_file.write_text(_CHECK_VCF)
            try:
                vcf = VCF(str(check_file))
                genotypes = next(iter(vcf)).genotypes
                vcf.close()
            except (OSError, StopIteration) as e:
                return CheckResult(name="htslib", passed=False, message=f"Cannot read VCF: {e}")

        passed = genotypes == [[0, 1, False]]
        return CheckResult(
            name="htslib",
            passed=passed,
            version="VCF decoding" if passed else None,
            message=None if passed else f"Unexpected genotypes: {genotypes}",
        )

    def check_all(self) -> list[CheckResult]:
        """Run all dependency checks.

        Returns:
            List of CheckResult for each dependency.
        """
        return [
            self.check_python(),
            self.check_cyvcf2(),
            self.check_numpy(),
            self.check_htslib(),
            self.check_lapack(),
        ]

    def get_install_instructions(self, dependency: str, os_platform: str | None = None) -> str:
        """Get installation instructions for a dependency.

        Args:
            dependency: Name of the dependency (e.g., 'htslib', 'python').
            os_platform: Platform name (darwin, linux, windows). Auto-detected if None.

        Returns:
            Installation instructions string.
        """
        if os_platform is None:
            os_platform = platform.system().lower()
            if os_platform not in ("darwin", "linux", "windows"):
                os_platform = "linux"

        instructions = INSTALL_INSTRUCTIONS.get(dependency, {})
        return instructions.get(os_platform, f"Please install {dependency}")

    def all_passed(self) -> bool:
        """Check if all dependencies are satisfied."""
        return all(r.passed for r in self.check_all())


def check_all() -> list[CheckResult]:
    """Convenience function to run all dependency checks."""
    return DependencyChecker().check_all()

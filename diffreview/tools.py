"""
Static analysis tool adapters.

Each adapter runs one tool over the scratch workspace and maps the tool's
native output into ``AnalysisIssue``. Adapters never raise: a tool that
cannot run, or whose output cannot be parsed, returns a failed ToolResult.
"""

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from pydantic import BaseModel, Field

from diffreview.models import AnalysisIssue, ReconstructedFile
from diffreview.rules import SCANNER_NAME, scan_files

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
TYPED_EXTENSIONS = (".ts", ".tsx")

ESLINT_CONFIG = {
    "root": True,
    "env": {"browser": True, "es2021": True, "node": True},
    "extends": ["eslint:recommended", "plugin:@typescript-eslint/recommended"],
    "parser": "@typescript-eslint/parser",
    "parserOptions": {
        "ecmaVersion": "latest",
        "sourceType": "module",
        "project": "./tsconfig.eslint.json",
    },
    "plugins": ["@typescript-eslint"],
    "rules": {
        # Security
        "no-eval": "error",
        "no-implied-eval": "error",
        "no-new-func": "error",
        "no-script-url": "error",
        # Performance
        "prefer-const": "error",
        "no-var": "error",
        "no-loop-func": "warn",
        # Type safety
        "@typescript-eslint/no-explicit-any": "warn",
        "@typescript-eslint/no-unused-vars": "warn",
        "@typescript-eslint/prefer-nullish-coalescing": "warn",
        "@typescript-eslint/prefer-optional-chain": "warn",
        # Complexity
        "complexity": ["warn", {"max": 10}],
        "max-depth": ["warn", {"max": 4}],
        "max-lines-per-function": ["warn", {"max": 50}],
        # Best practices
        "eqeqeq": "error",
        "no-console": "warn",
        "no-debugger": "error",
        "no-alert": "error",
    },
}

ESLINT_TSCONFIG = {
    "compilerOptions": {
        "target": "ES2020",
        "lib": ["ES2020", "DOM"],
        "allowJs": True,
        "skipLibCheck": True,
        "esModuleInterop": True,
        "strict": True,
        "moduleResolution": "node",
        "noEmit": True,
        "jsx": "react-jsx",
    },
    "include": ["**/*"],
}

STRICT_TSCONFIG_OPTIONS = {
    "target": "ES2020",
    "lib": ["ES2020", "DOM"],
    "module": "ESNext",
    "moduleResolution": "node",
    "strict": True,
    "noImplicitAny": True,
    "strictNullChecks": True,
    "noImplicitThis": True,
    "noUnusedLocals": True,
    "noUnusedParameters": True,
    "noImplicitReturns": True,
    "noFallthroughCasesInSwitch": True,
    "noUncheckedIndexedAccess": True,
    "esModuleInterop": True,
    "forceConsistentCasingInFileNames": True,
    "resolveJsonModule": True,
    "skipLibCheck": True,
    "noEmit": True,
    "jsx": "react-jsx",
}

TSC_ERROR_LINE = re.compile(r"^(.+?)\((\d+),(\d+)\): error TS(\d+): (.+)$")

ESLINT_CATEGORY_RULES = {
    "security": ("no-eval", "no-implied-eval", "no-new-func", "no-script-url"),
    "performance": ("no-loop-func", "prefer-const", "no-var"),
    "style": ("indent", "quotes", "semi", "comma-spacing", "brace-style"),
    "maintainability": ("complexity", "max-depth", "max-lines", "no-console", "no-debugger"),
}

TSC_SYNTAX_CODES = {"1005", "1009", "1014", "1016"}


class ToolExecutionError(Exception):
    """External tool could not be run or produced unusable output."""
    pass


class CommandOutput(NamedTuple):
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    """Runs external commands as asyncio subprocesses with a timeout."""

    def __init__(self, timeout: float = 120.0):
        self.timeout = timeout

    async def run(
        self,
        args: Sequence[str],
        cwd: Path,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandOutput:
        merged_env = {**os.environ, **env} if env else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd),
                env=merged_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ToolExecutionError(f"Cannot execute {args[0]}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ToolExecutionError(f"{args[0]} timed out after {self.timeout}s")

        return CommandOutput(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


class ToolResult(BaseModel):
    """Outcome of one tool run, tagged with the tool name."""

    tool: str
    ok: bool
    issues: List[AnalysisIssue] = Field(default_factory=list)
    raw: Any = None
    error: Optional[str] = None


def relative_to_workspace(reported_path: str, workspace: Path) -> str:
    """Map a tool-reported path back to the input filename."""
    path = Path(reported_path)
    if not path.is_absolute():
        path = workspace / path
    try:
        return path.resolve().relative_to(workspace.resolve()).as_posix()
    except ValueError:
        return reported_path


def categorize_eslint_rule(rule_id: str) -> str:
    for category, rules in ESLINT_CATEGORY_RULES.items():
        if any(rule in rule_id for rule in rules):
            return category
    if rule_id.startswith("@typescript-eslint/"):
        return "type"
    return "syntax"


def categorize_tsc_code(code: str) -> str:
    if code in TSC_SYNTAX_CODES:
        return "syntax"
    # Everything else the compiler reports is a typing problem
    return "type"


def parse_eslint_output(stdout: str, workspace: Path) -> List[AnalysisIssue]:
    """Map ESLint's JSON formatter output to issues."""
    try:
        results = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ToolExecutionError(f"ESLint output is not valid JSON: {e}")

    if not isinstance(results, list):
        raise ToolExecutionError("ESLint output is not a JSON array")

    issues = []
    for result in results:
        file = relative_to_workspace(result.get("filePath", ""), workspace)
        for message in result.get("messages", []):
            rule_id = message.get("ruleId") or "unknown"
            severity_code = message.get("severity")
            suggestions = message.get("suggestions") or []
            issues.append(AnalysisIssue(
                tool="ESLint",
                file=file,
                line=message.get("line") or 0,
                column=message.get("column"),
                severity="error" if severity_code == 2 else "warning" if severity_code == 1 else "info",
                rule=rule_id,
                message=message.get("message", ""),
                category=categorize_eslint_rule(rule_id),
                suggestion=suggestions[0].get("desc") if suggestions else None,
            ))

    return issues


def parse_tsc_output(output: str, workspace: Path) -> List[AnalysisIssue]:
    """Map ``path(line,col): error TSCODE: message`` lines to error issues."""
    issues = []

    for line in output.split("\n"):
        match = TSC_ERROR_LINE.match(line.strip())
        if not match:
            continue
        file_path, line_num, col_num, code, message = match.groups()
        issues.append(AnalysisIssue(
            tool="TypeScript",
            file=relative_to_workspace(file_path, workspace),
            line=int(line_num),
            column=int(col_num),
            severity="error",
            rule=f"TS{code}",
            message=message,
            category=categorize_tsc_code(code),
        ))

    return issues


class AnalysisTool:
    """Base adapter. Subclasses pick their files and implement ``_execute``."""

    name = "tool"
    extensions: Sequence[str] = ()
    # External tools only see files that made it into the workspace
    needs_workspace = True

    def select(self, files: Sequence[ReconstructedFile]) -> List[ReconstructedFile]:
        return [f for f in files if f.filename.endswith(tuple(self.extensions))]

    async def run(
        self,
        files: Sequence[ReconstructedFile],
        workspace: Path,
        runner: CommandRunner,
    ) -> ToolResult:
        try:
            issues, raw = await self._execute(files, workspace, runner)
        except ToolExecutionError as e:
            logger.warning(f"{self.name} failed: {e}")
            return ToolResult(tool=self.name, ok=False, error=str(e))
        except Exception as e:
            logger.warning(f"{self.name} failed unexpectedly: {e}")
            return ToolResult(tool=self.name, ok=False, error=str(e))

        return ToolResult(tool=self.name, ok=True, issues=issues, raw=raw)

    async def _execute(self, files, workspace, runner):
        raise NotImplementedError


class LinterTool(AnalysisTool):
    """ESLint with a generated security/type-safety/complexity config."""

    name = "ESLint"
    extensions = SCRIPT_EXTENSIONS

    def __init__(self, command: Sequence[str] = ("npx", "eslint")):
        self.command = list(command)

    async def _execute(self, files, workspace, runner):
        (workspace / ".eslintrc.json").write_text(json.dumps(ESLINT_CONFIG, indent=2))
        (workspace / "tsconfig.eslint.json").write_text(json.dumps(ESLINT_TSCONFIG, indent=2))

        args = self.command + [
            "--no-eslintrc",
            "--config", ".eslintrc.json",
            "--format", "json",
        ] + [f.filename for f in files]

        # ESLint exits 1 when it reports problems, so only the output matters
        output = await runner.run(args, cwd=workspace, env={"ESLINT_USE_FLAT_CONFIG": "false"})
        issues = parse_eslint_output(output.stdout, workspace)
        return issues, {"exitCode": output.returncode, "filesLinted": len(files)}


class TypeCheckTool(AnalysisTool):
    """TypeScript compiler in strict, no-emit mode."""

    name = "TypeScript"
    extensions = TYPED_EXTENSIONS

    def __init__(self, command: Sequence[str] = ("npx", "tsc")):
        self.command = list(command)

    async def _execute(self, files, workspace, runner):
        tsconfig = {
            "compilerOptions": STRICT_TSCONFIG_OPTIONS,
            "files": [f.filename for f in files],
        }
        (workspace / "tsconfig.json").write_text(json.dumps(tsconfig, indent=2))

        args = self.command + ["--noEmit", "--pretty", "false", "-p", "tsconfig.json"]
        output = await runner.run(args, cwd=workspace)
        if output.returncode == 0:
            return [], {"exitCode": 0}

        issues = parse_tsc_output(output.stdout + "\n" + output.stderr, workspace)
        if not issues:
            detail = (output.stderr or output.stdout).strip()[:200]
            raise ToolExecutionError(f"tsc exited with {output.returncode} and no parseable diagnostics: {detail}")
        return issues, {"exitCode": output.returncode}


class SecurityScanTool(AnalysisTool):
    """In-process pattern scanner; runs over every file."""

    name = SCANNER_NAME
    needs_workspace = False

    def select(self, files):
        return list(files)

    async def _execute(self, files, workspace, runner):
        issues = scan_files(files)
        raw = {
            "filesScanned": len(files),
            "totalLinesScanned": sum(len(f.content.split("\n")) for f in files),
        }
        return issues, raw


def default_tools(
    eslint_command: Sequence[str] = ("npx", "eslint"),
    tsc_command: Sequence[str] = ("npx", "tsc"),
) -> List[AnalysisTool]:
    """Linter, type checker and pattern scanner, in reporting order."""
    return [LinterTool(eslint_command), TypeCheckTool(tsc_command), SecurityScanTool()]

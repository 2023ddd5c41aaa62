"""
Pattern-based security scanner.

Deterministic, fast, and needs no external tool. Rules are applied line by
line, in registry order, to the raw text of every file.
"""

import re
from typing import Iterable, List

from diffreview.models import AnalysisIssue, ReconstructedFile

SCANNER_NAME = "Security Scanner"

SECURITY_PATTERNS = [
    {
        "pattern": r"\beval\s*\(|\bnew\s+Function\s*\(",
        "message": "Use of eval() can lead to code injection vulnerabilities",
        "rule": "no-eval",
        "severity": "error",
        "category": "security",
        "suggestion": "Use JSON.parse() for data or create a safer alternative",
    },
    {
        "pattern": r"(?<![.\w])exec\s*\(",
        "message": "Use of exec() can lead to code injection vulnerabilities",
        "rule": "no-exec",
        "severity": "error",
        "category": "security",
        "suggestion": "Avoid executing dynamically built code",
    },
    {
        "pattern": r"innerHTML\s*=",
        "message": "Direct innerHTML assignment can lead to XSS vulnerabilities",
        "rule": "no-inner-html",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use textContent or a sanitization library",
    },
    {
        "pattern": r"document\.write\s*\(",
        "message": "document.write can be dangerous and should be avoided",
        "rule": "no-document-write",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use DOM manipulation methods instead",
    },
    {
        "pattern": r"(password|pwd|secret|token|key).*=.*['\"]\w+['\"]",
        "message": "Hardcoded credential detected - security risk",
        "rule": "no-hardcoded-credentials",
        "severity": "error",
        "category": "security",
        "suggestion": "Use environment variables or secure credential storage",
        "flags": re.IGNORECASE,
    },
    {
        "pattern": r"api[_-]?key.*=.*['\"]\w{10,}['\"]",
        "message": "Hardcoded API key detected",
        "rule": "no-hardcoded-api-key",
        "severity": "error",
        "category": "security",
        "suggestion": "Store API keys in environment variables",
        "flags": re.IGNORECASE,
    },
    {
        "pattern": r"Math\.random\(\)|\brandom\.random\(\)",
        "message": "Non-cryptographic random number generator used",
        "rule": "no-weak-random",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use crypto.randomBytes() or the secrets module for security-sensitive values",
    },
    {
        "pattern": r"\bpickle\.loads?\(",
        "message": "Use of pickle detected - unsafe for untrusted data",
        "rule": "no-unsafe-deserialization",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use a data-only format such as JSON",
    },
    {
        "pattern": r"hashlib\.md5|createHash\(\s*['\"]md5['\"]",
        "message": "MD5 is cryptographically broken",
        "rule": "no-weak-hash",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use SHA-256 or a password hashing function such as bcrypt",
    },
    {
        "pattern": r"localStorage\.|sessionStorage\.",
        "message": "Web storage can be accessed by XSS attacks",
        "rule": "web-storage-security",
        "severity": "info",
        "category": "security",
        "suggestion": "Avoid storing sensitive data in web storage",
    },
    {
        "pattern": r"\.exec\(|child_process|spawn\(|os\.system\(",
        "message": "Command execution detected - potential security risk",
        "rule": "command-injection",
        "severity": "warning",
        "category": "security",
        "suggestion": "Validate and sanitize all inputs to command execution",
    },
    {
        "pattern": r"SELECT.*FROM.*WHERE.*\+|UPDATE.*SET.*WHERE.*\+|INSERT.*VALUES.*\+",
        "message": "Potential SQL injection vulnerability",
        "rule": "sql-injection",
        "severity": "error",
        "category": "security",
        "suggestion": "Use parameterized queries or prepared statements",
        "flags": re.IGNORECASE,
    },
    {
        "pattern": r"console\.log\s*\(",
        "message": "Console.log statements should be removed in production",
        "rule": "no-console",
        "severity": "info",
        "category": "maintainability",
        "suggestion": "Use proper logging framework or remove debug statements",
    },
    {
        "pattern": r"\bdebugger;",
        "message": "Debugger statements should not be committed",
        "rule": "no-debugger",
        "severity": "warning",
        "category": "maintainability",
        "suggestion": "Remove debugger statements before committing",
    },
    {
        "pattern": r"['\"]http://(?!localhost|127\.0\.0\.1)",
        "message": "Insecure HTTP transport detected",
        "rule": "no-insecure-requests",
        "severity": "warning",
        "category": "security",
        "suggestion": "Use HTTPS for all external requests",
    },
    {
        "pattern": r"from\s+\S+\s+import\s+\*",
        "message": "Star import (import *) detected. Consider explicit imports.",
        "rule": "no-star-import",
        "severity": "info",
        "category": "style",
        "suggestion": "Import the names you use explicitly",
    },
]

# Compiled once, order preserved
RULE_REGISTRY = [
    (re.compile(rule["pattern"], rule.get("flags", 0)), rule)
    for rule in SECURITY_PATTERNS
]


def scan_file(file: ReconstructedFile) -> List[AnalysisIssue]:
    """Apply every registered rule to each line of one file."""
    issues = []

    for line_index, line in enumerate(file.content.split("\n")):
        for regex, rule in RULE_REGISTRY:
            for match in regex.finditer(line):
                issues.append(AnalysisIssue(
                    tool=SCANNER_NAME,
                    file=file.filename,
                    line=line_index + 1,
                    column=match.start() + 1,
                    severity=rule["severity"],
                    rule=rule["rule"],
                    message=rule["message"],
                    category=rule["category"],
                    suggestion=rule["suggestion"],
                ))

    return issues


def scan_files(files: Iterable[ReconstructedFile]) -> List[AnalysisIssue]:
    """Run the scanner over all files."""
    issues = []
    for file in files:
        issues.extend(scan_file(file))
    return issues

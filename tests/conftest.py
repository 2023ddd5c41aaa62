"""Shared fixtures: sample diffs and a scripted LLM client."""

import json

import pytest

from diffreview.llm import ReviewerError

NEW_TS_FILE_DIFF = """diff --git a/src/auth.ts b/src/auth.ts
new file mode 100644
index 0000000..1111111
--- /dev/null
+++ b/src/auth.ts
@@ -0,0 +1,6 @@
+const apiKey = "abcdefghij1234";
+function login(user: string) {
+  const query = "SELECT * FROM users WHERE name = " + user;
+  console.log(query);
+  return eval(query);
+}"""

TWO_FILE_DIFF = """diff --git a/app.js b/app.js
index 1234567..abcdefg 100644
--- a/app.js
+++ b/app.js
@@ -1,3 +1,4 @@
 const express = require("express");
+const helmet = require("helmet");
 const app = express();
-app.listen(80);
+app.listen(8080);
@@ -20,2 +21,3 @@
 module.exports = app;
+// end

diff --git a/README.md b/README.md
index 2222222..3333333 100644
--- a/README.md
+++ b/README.md
@@ -5 +5 @@
-Old line
+New line"""

VALID_REVIEW = {
    "summary": "Adds a login helper with several security problems.",
    "potentialIssues": [
        {
            "file": "src/auth.ts",
            "line": 5,
            "severity": "HIGH",
            "category": "Security",
            "issue": "eval on user-controlled input",
            "suggestion": "Remove eval and use a parameterized query",
            "reasoning": "Arbitrary code execution",
        }
    ],
    "refactorSuggestions": [],
    "testRecommendations": [{"file": "src/auth.ts", "suggestion": "Cover login with hostile input"}],
    "finalVerdict": "major_fixes",
}

VALID_TRIAGE = {
    "summary": "Adds a login helper",
    "quickIssues": ["eval usage"],
    "complexity": "HIGH",
    "recommendDeepAnalysis": True,
}


class FakeLLM:
    """
    Scripted stand-in for LLMClient.

    Each entry in ``responses`` maps a model name to a string (returned as
    is) or an exception instance (raised). Calls are recorded.
    """

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def generate(self, prompt, model, system_prompt="", schema=None):
        self.calls.append({"prompt": prompt, "model": model, "system_prompt": system_prompt, "schema": schema})
        response = self.responses[model]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def new_ts_file_diff():
    return NEW_TS_FILE_DIFF


@pytest.fixture
def two_file_diff():
    return TWO_FILE_DIFF


@pytest.fixture
def review_json():
    return json.dumps(VALID_REVIEW)


@pytest.fixture
def triage_json():
    return json.dumps(VALID_TRIAGE)


@pytest.fixture
def fake_llm_factory():
    return FakeLLM


@pytest.fixture
def failing_llm_error():
    return ReviewerError("OpenAI API error: connection refused")

"""
Evaluation harness for the Ilimex evidence retrieval API.

Posts each test question to /chat and checks the answer for required and
forbidden phrases, and the top evidence for its expected sections.

Usage:
    python evaluate_retrieval.py [--api-url http://localhost:8000] [--questions data/eval_questions.json]
"""
import argparse
import json
import sys
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

DEFAULT_QUESTIONS_PATH = Path(__file__).parent / "data" / "eval_questions.json"


@dataclass
class EvalCase:
    """Test question with expected behaviour."""
    id: str
    question: str
    mode: str = "public"
    category: str = ""
    must_include: List[str] = field(default_factory=list)
    must_not_include: List[str] = field(default_factory=list)
    expected_sections: List[str] = field(default_factory=list)


@dataclass
class EvalResult:
    """Outcome of one test question."""
    case_id: str
    mode: str
    category: str
    ok: bool
    missing_includes: List[str] = field(default_factory=list)
    present_forbidden: List[str] = field(default_factory=list)
    top_section: Optional[str] = None
    section_ok: bool = True
    grounded: bool = False
    latency_ms: int = 0
    reply: str = ""
    error: Optional[str] = None


def load_cases(path: Path) -> List[EvalCase]:
    with open(path, "r", encoding="utf-8") as f:
        return [EvalCase(**entry) for entry in json.load(f)]


def check_reply(case: EvalCase, reply: str) -> Dict[str, List[str]]:
    """Case-insensitive phrase checks on the reply."""
    lower = reply.lower()
    return {
        "missing_includes": [p for p in case.must_include if p and p.lower() not in lower],
        "present_forbidden": [p for p in case.must_not_include if p and p.lower() in lower],
    }


class EvaluationHarness:
    """Runs evaluation cases against a running API."""

    def __init__(self, api_url: str = "http://localhost:8000", internal_key: Optional[str] = None):
        self.api_url = api_url.rstrip("/")
        self.internal_key = internal_key
        self.results: List[EvalResult] = []

    def execute_case(self, case: EvalCase) -> EvalResult:
        headers = {"X-Internal-Key": self.internal_key} if self.internal_key else {}
        try:
            response = requests.post(
                f"{self.api_url}/chat",
                json={
                    "messages": [{"role": "user", "content": case.question}],
                    "mode": case.mode
                },
                headers=headers,
                timeout=60
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            return EvalResult(case_id=case.id, mode=case.mode, category=case.category, ok=False, error=str(e))

        reply = data.get("reply", {}).get("content", "")
        evidence: List[Dict[str, Any]] = data.get("evidence", [])
        top_section = evidence[0]["section"] if evidence else None
        section_ok = not case.expected_sections or top_section in case.expected_sections

        checks = check_reply(case, reply)
        ok = not checks["missing_includes"] and not checks["present_forbidden"] and section_ok

        return EvalResult(
            case_id=case.id,
            mode=case.mode,
            category=case.category,
            ok=ok,
            missing_includes=checks["missing_includes"],
            present_forbidden=checks["present_forbidden"],
            top_section=top_section,
            section_ok=section_ok,
            grounded=data.get("grounded", False),
            latency_ms=data.get("latency_ms", 0),
            reply=reply
        )

    def run(self, cases: List[EvalCase], delay_ms: int = 100) -> None:
        print(f"Running evaluation with {len(cases)} questions against {self.api_url}")
        print()

        for i, case in enumerate(cases, start=1):
            result = self.execute_case(case)
            self.results.append(result)

            status = "PASS" if result.ok else "FAIL"
            print(f"[{i}/{len(cases)}] {status} {case.id} [{case.mode}/{case.category}]")
            if result.error:
                print(f"  Error: {result.error}")
            if result.missing_includes:
                print(f"  Missing must_include: {result.missing_includes}")
            if result.present_forbidden:
                print(f"  Present forbidden: {result.present_forbidden}")
            if not result.section_ok:
                print(f"  Top evidence section {result.top_section!r} not in {case.expected_sections}")

            time.sleep(delay_ms / 1000)

    def summary(self) -> Dict[str, Any]:
        passed = sum(1 for r in self.results if r.ok)
        latencies = [r.latency_ms for r in self.results if not r.error]
        return {
            "total": len(self.results),
            "passed": passed,
            "failed": len(self.results) - passed,
            "grounded": sum(1 for r in self.results if r.grounded),
            "mean_latency_ms": sum(latencies) / len(latencies) if latencies else 0.0,
        }


def main():
    """Main entry point for the evaluation harness."""
    parser = argparse.ArgumentParser(description="Evaluation harness for the Ilimex evidence retrieval API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="Base URL for the API")
    parser.add_argument("--questions", default=str(DEFAULT_QUESTIONS_PATH), help="Path to the eval questions JSON")
    parser.add_argument("--output", default="eval_report.json", help="Path for the detailed JSON report")
    parser.add_argument("--internal-key", default=None, help="Send X-Internal-Key to receive debug payloads")
    parser.add_argument("--delay", type=int, default=100, help="Delay between questions in milliseconds")
    args = parser.parse_args()

    cases = load_cases(Path(args.questions))
    harness = EvaluationHarness(api_url=args.api_url, internal_key=args.internal_key)
    harness.run(cases, delay_ms=args.delay)

    summary = harness.summary()
    print()
    print("=== SUMMARY ===")
    print(f"Total:    {summary['total']}")
    print(f"Passed:   {summary['passed']}")
    print(f"Failed:   {summary['failed']}")
    print(f"Grounded: {summary['grounded']}")
    print(f"Mean latency: {summary['mean_latency_ms']:.1f} ms")

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump({"summary": summary, "results": [asdict(r) for r in harness.results]}, f, indent=2)
    print(f"Detailed report written to: {args.output}")

    sys.exit(1 if summary["failed"] else 0)


if __name__ == "__main__":
    main()

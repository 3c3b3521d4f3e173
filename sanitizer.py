"""
Sanitizer for AI-generated Manim code.

The model output is untrusted: it hallucinates API surface and reaches for
constructs that render unreliably. Instead of rejecting the code, the
sanitizer rewrites it structurally so that a render attempt is always made.
Rewriting is pattern based and works on single-level call syntax, so a
blacklisted name is matched wherever it appears as a whole word followed by a
parenthesis, including inside string literals.
"""

import logging
import re

from config import SCENE_NAME

FORBIDDEN_ELEMENTS = (
    # LaTeX
    "MathTex", "Tex", "TexTemplate",
    # Graphing/Axes
    "Axes", "NumberLine", "NumberPlane", "get_graph", "plot", "get_axis_labels",
    # Advanced/unreliable animations
    "Flash", "Indicate", "ApplyMethod", "ShowCreation", "DrawBorderThenFill",
    # Arrows
    "Arrow", "DoubleArrow", "CurvedArrow", "Vector",
    # 3D elements
    "ThreeDScene", "ThreeDAxes", "Surface", "ParametricSurface",
    # Complex shapes
    "Polygon", "RegularPolygon", "Triangle", "Ellipse", "Arc", "ArcBetweenPoints", "CurvedDoubleArrow",
    # Rate functions
    "linear", "smooth", "rush_into", "rush_from",
)

LEGACY_ALIASES = ("MathTex", "Tex")
PLACEHOLDER = 'Text("Element removed")'
FIXED_WAIT = "self.wait(1)"
SHORT_WAIT = "self.wait(0.5)"
HALLUCINATED_WAITS = ("wait_until", "pause")

# One rule can expose a match for another (a removed method joining two
# tokens, runs of commas), so passes repeat until the code stops changing.
MAX_PASSES = 10


class CodeSanitizer:
    """Rewrites generated code into the whitelisted Manim subset."""

    def __init__(self, source: str, forbidden=FORBIDDEN_ELEMENTS):
        self.code = source if isinstance(source, str) else ""
        self.forbidden = tuple(forbidden)
        self.fixes_applied = []

    def _record(self, count: int, fix: str):
        if count and fix not in self.fixes_applied:
            self.fixes_applied.append(fix)

    def _rewrite_blacklist(self):
        for name in self.forbidden:
            escaped = re.escape(name)
            # Methods go first so that `obj.plot(...)` is dropped, not turned into a label.
            self.code, n = re.subn(rf"\.{escaped}\s*\([^)]*\)", "", self.code)
            self._record(n, f"Removed .{name}() calls")
            self.code, n = re.subn(rf"(?<!\.)\b{escaped}\s*\([^)]*\)", PLACEHOLDER, self.code)
            self._record(n, f"Replaced {name}() with a placeholder label")

            # Unterminated calls have no closing parenthesis left to match.
            self.code, n = re.subn(rf"\.{escaped}\s*\(", "(", self.code)
            self._record(n, f"Removed unterminated .{name}( call")
            self.code, n = re.subn(rf"(?<!\.)\b{escaped}\s*\(", "Text(", self.code)
            self._record(n, f"Aliased unterminated {name}( to Text(")

    def _alias_legacy(self):
        for name in LEGACY_ALIASES:
            self.code, n = re.subn(rf"\b{name}\s*\(", "Text(", self.code)
            self._record(n, f"Aliased {name} to Text")

    def _strip_unpacking(self):
        # The whole star run goes, so no shorter run is left behind.
        self.code, n = re.subn(r"\*{2,}[A-Za-z_]\w*[ \t]*,?", "", self.code)
        self._record(n, "Removed **kwargs unpacking")

    def _normalize_waits(self):
        for method in HALLUCINATED_WAITS:
            self.code, n = re.subn(rf"self\.{method}\s*\([^)]*\)", FIXED_WAIT, self.code)
            self._record(n, f"Replaced self.{method}() with {FIXED_WAIT}")

    def _clean_dead_constructs(self):
        self.code, n = re.subn(r"self\.play\(\s*\)", SHORT_WAIT, self.code)
        self._record(n, "Replaced empty self.play()")
        self.code, n = re.subn(r"(?m)^[ \t]*,[ \t]*(?:\n|$)", "", self.code)
        self._record(n, "Removed stray comma lines")
        self.code, n = re.subn(r",(?:\s*,)+", ",", self.code)
        self._record(n, "Collapsed duplicate commas")

    def run(self) -> str:
        for _ in range(MAX_PASSES):
            before = self.code
            self._rewrite_blacklist()
            self._alias_legacy()
            self._strip_unpacking()
            self._normalize_waits()
            self._clean_dead_constructs()
            if self.code == before:
                break

        if self.fixes_applied:
            logging.warning(f"🔧 AUTO-FIXES APPLIED: {', '.join(self.fixes_applied)}")

        return self.code


def sanitize(source: str) -> str:
    """Total function: never raises, always returns the rewritten source."""
    return CodeSanitizer(source).run()


def strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:python|py)?\n?|```", "", text or "").strip()


def detect_scene_name(code: str, default: str = SCENE_NAME) -> str:
    match = re.search(r"class\s+(\w+)\s*\(\s*\w*Scene\s*\)\s*:", code)
    if match:
        return match.group(1)
    return default

import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from tools import MathTools, SlugTools, PLAN_PALETTE, pick_color, confirmed


class MathToolsTestCase(unittest.TestCase):
    def test_clamp(self) -> None:
        self.assertEqual(MathTools.clamp(5, 0, 10), 5)
        self.assertEqual(MathTools.clamp(-1, 0, 10), 0)
        self.assertEqual(MathTools.clamp(11, 0, 10), 10)
        with self.assertRaises(ValueError):
            MathTools.clamp(1, 2, 1)

    def test_to_number(self) -> None:
        self.assertEqual(MathTools.to_number("12.5"), 12.5)
        self.assertEqual(MathTools.to_number(" 7 "), 7.0)
        self.assertEqual(MathTools.to_number("2,5"), 2.5)
        self.assertEqual(MathTools.to_number(""), 0.0)
        self.assertEqual(MathTools.to_number("abc"), 0.0)
        self.assertEqual(MathTools.to_number(None), 0.0)
        self.assertIsNone(MathTools.to_number("x", default=None))
        self.assertEqual(MathTools.to_int("8"), 8)

    def test_non_finite_input_is_rejected(self) -> None:
        for text in ("nan", "inf", "-Infinity"):
            self.assertEqual(MathTools.to_number(text), 0.0)
            self.assertEqual(MathTools.to_int(text), 0)
        self.assertIsNone(MathTools.to_number(float("nan"), default=None))
        self.assertEqual(MathTools.volume([("nan", 20), (5, 10)]), 50.0)

    def test_volume(self) -> None:
        self.assertEqual(MathTools.volume([(10, 20), (8, 0)]), 200.0)
        self.assertEqual(MathTools.volume([(10, None)]), 0.0)
        self.assertEqual(MathTools.volume([]), 0.0)


class SlugToolsTestCase(unittest.TestCase):
    def test_slugify(self) -> None:
        self.assertEqual(SlugTools.slugify("Leg Day!!"), "leg-day")
        self.assertEqual(SlugTools.slugify("  Push / Pull  "), "push-pull")
        self.assertEqual(SlugTools.slugify("!!!"), "")
        self.assertEqual(len(SlugTools.slugify("a" * 80)), 40)

    def test_first_slug_priority(self) -> None:
        self.assertEqual(SlugTools.first_slug(["backDay", "Monday"]), "backday")
        self.assertEqual(SlugTools.first_slug(["", "??", "Upper Body"]), "upper-body")
        self.assertEqual(SlugTools.first_slug(["", None, ""], now_ms=123), "plan-123")
        self.assertTrue(SlugTools.first_slug(["", ""]).startswith("plan-"))


class PaletteTestCase(unittest.TestCase):
    def test_pick_color_stable(self) -> None:
        self.assertIn(pick_color("Monday"), PLAN_PALETTE)
        self.assertEqual(pick_color("Monday"), pick_color("Monday"))
        self.assertEqual(pick_color(""), PLAN_PALETTE[0])

    def test_confirmed(self) -> None:
        self.assertTrue(confirmed(True, "Delete?"))
        self.assertFalse(confirmed(False, "Delete?"))
        prompts = []
        self.assertTrue(confirmed(lambda p: prompts.append(p) or True, "Delete it?"))
        self.assertEqual(prompts, ["Delete it?"])


if __name__ == "__main__":
    unittest.main()

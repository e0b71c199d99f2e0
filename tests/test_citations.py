import unittest

from askhub.generation.post import cited_indices, enforce_citations


class TestCitations(unittest.TestCase):
    def test_removes_out_of_range(self):
        ans = "See [1] and [4] for details."
        out = enforce_citations(ans, 3)
        self.assertIn("[1]", out)
        self.assertNotIn("[4]", out)
        self.assertEqual(out, "See [1] and for details.")

    def test_removes_zero(self):
        self.assertEqual(enforce_citations("Claim [0].", 2), "Claim.")

    def test_compacts_adjacent(self):
        ans = "Related work [1] [2] shows..."
        out = enforce_citations(ans, 2)
        self.assertIn("[1][2]", out)
        self.assertNotIn("[1] [2]", out)

    def test_handles_empty_answer(self):
        self.assertEqual(enforce_citations("", 1), "")
        self.assertEqual(enforce_citations("   ", 1), "")

    def test_cited_indices_unique_in_order(self):
        self.assertEqual(cited_indices("A [2]. B [1][2]. C [5]"), [2, 1, 5])
        self.assertEqual(cited_indices("no citations"), [])


if __name__ == "__main__":
    unittest.main()

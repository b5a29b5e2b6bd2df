import unittest

from gpm.specifier import (
    BranchSpecifier,
    CommitSpecifier,
    TagSpecifier,
    UrlSpecifier,
    candidate_urls,
    parse_specifier,
    staging_filename,
)

BASE = "https://github.com/acme/widget/archive"


class TestParseSpecifier(unittest.TestCase):
    def test_forms_in_priority_order(self) -> None:
        self.assertEqual(parse_specifier("https://cdn.example.com/w.zip"), UrlSpecifier("https://cdn.example.com/w.zip"))
        self.assertEqual(parse_specifier("#1a2b3c4"), CommitSpecifier("1a2b3c4"))
        self.assertEqual(parse_specifier("dev-main"), BranchSpecifier("main"))
        self.assertEqual(parse_specifier("1.2.3"), TagSpecifier("1.2.3"))

    def test_empty_means_latest(self) -> None:
        self.assertIsNone(parse_specifier(None))
        self.assertIsNone(parse_specifier(""))
        self.assertIsNone(parse_specifier("   "))

    def test_renders_back_to_manifest_text(self) -> None:
        for raw in ("#1a2b3c4", "dev-feature/x", "v2.0", "http://example.com/a.js"):
            self.assertEqual(str(parse_specifier(raw)), raw)


class TestCandidateUrls(unittest.TestCase):
    def test_tag_has_primary_then_v_prefixed_alternate(self) -> None:
        self.assertEqual(
            candidate_urls(TagSpecifier("1.2.3"), BASE),
            [f"{BASE}/refs/tags/1.2.3.zip", f"{BASE}/refs/tags/v1.2.3.zip"],
        )

    def test_commit_branch_and_url(self) -> None:
        self.assertEqual(candidate_urls(CommitSpecifier("abc1234"), BASE), [f"{BASE}/abc1234.zip"])
        self.assertEqual(candidate_urls(BranchSpecifier("main"), BASE), [f"{BASE}/refs/heads/main.zip"])
        self.assertEqual(candidate_urls(UrlSpecifier("https://x.test/f.js"), BASE), ["https://x.test/f.js"])

    def test_staging_filename(self) -> None:
        self.assertEqual(staging_filename(TagSpecifier("1.0"), "widget"), "widget.zip")
        self.assertEqual(staging_filename(UrlSpecifier("https://x.test/dl/lib.min.js?raw=1"), "widget"), "lib.min.js")
        self.assertEqual(staging_filename(UrlSpecifier("https://x.test/"), "widget"), "widget.zip")


if __name__ == "__main__":
    unittest.main()

import unittest


from app.schemas.common import Priority
from app.services.classification import (
    categorize,
    determine_priority,
    extract_tags,
    skill_matches_category,
    sla_hours_for,
)


class TestCategorize(unittest.TestCase):
    def test_first_match_wins(self):
        # "password" (account) is checked before "payment" (billing)
        self.assertEqual(categorize("Password reset after payment failed"), "Account & Access")

    def test_categories(self):
        self.assertEqual(categorize("I was charged twice"), "Billing & Payments")
        self.assertEqual(categorize("The export is NOT WORKING"), "Technical Issues")
        self.assertEqual(categorize("Got an Error on save"), "Technical Issues")
        self.assertEqual(categorize("What are your opening hours?"), "General Inquiry")

    def test_empty_text(self):
        self.assertEqual(categorize(""), "General Inquiry")
        self.assertEqual(categorize(None), "General Inquiry")


class TestPriority(unittest.TestCase):
    def test_most_severe_first(self):
        self.assertEqual(determine_priority("Urgent: app is broken"), Priority.URGENT)
        self.assertEqual(determine_priority("I cannot log in, please help"), Priority.HIGH)
        self.assertEqual(determine_priority("small issue with my profile"), Priority.MEDIUM)
        self.assertEqual(determine_priority("just saying thanks"), Priority.LOW)

    def test_empty_text(self):
        self.assertEqual(determine_priority(""), Priority.LOW)


class TestTags(unittest.TestCase):
    def test_tags_are_independent(self):
        self.assertEqual(
            extract_tags("Login bug after password change, billing page too"),
            ["login", "password", "billing", "bug"],
        )

    def test_feature_request(self):
        self.assertEqual(extract_tags("Feature idea: dark mode"), ["feature-request"])

    def test_no_tags(self):
        self.assertEqual(extract_tags(""), [])


class TestSla(unittest.TestCase):
    def test_table(self):
        self.assertEqual(sla_hours_for("Account & Access"), 4)
        self.assertEqual(sla_hours_for("Billing & Payments"), 8)
        self.assertEqual(sla_hours_for("Technical Issues"), 2)
        self.assertEqual(sla_hours_for("General Inquiry"), 24)
        self.assertEqual(sla_hours_for("Something else"), 24)


class TestSkillMatch(unittest.TestCase):
    def test_token_and_exact(self):
        self.assertTrue(skill_matches_category(["billing"], "Billing & Payments"))
        self.assertTrue(skill_matches_category(["billing & payments"], "Billing & Payments"))
        self.assertTrue(skill_matches_category(["Technical"], "Technical Issues"))

    def test_no_match(self):
        self.assertFalse(skill_matches_category([], "Billing & Payments"))
        self.assertFalse(skill_matches_category(["bill"], "Billing & Payments"))
        self.assertFalse(skill_matches_category(["billing"], ""))


if __name__ == "__main__":
    unittest.main()

import unittest

from kiosk.services import joint_builder as jb
from kiosk.services.joint_builder import (
    AddOn,
    External,
    Filling,
    FillingPortion,
    FilterChoice,
    JointConfig,
    PaperChoice,
)


def golden_joint(**filling) -> JointConfig:
    return JointConfig(
        paper=PaperChoice(type=jb.PAPER_GOLDEN, name="Golden Paper", price_cents=15000),
        filter=FilterChoice(type=jb.FILTER_GLASS_10MM, name="Glass Filter (10mm)", price_cents=15000),
        filling=Filling(**filling),
    )


class FilterRulesTests(unittest.TestCase):
    def test_pre_rolled_cone_takes_no_filter(self):
        for ftype in jb.FILTER_LENGTHS:
            self.assertFalse(jb.is_filter_allowed(jb.PAPER_PRE_ROLLED, ftype))

    def test_hemp_wrap_filters(self):
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_HEMP_WRAP, jb.FILTER_GLASS_12MM))
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_HEMP_WRAP, jb.FILTER_PAPER_MEDIUM))
        self.assertFalse(jb.is_filter_allowed(jb.PAPER_HEMP_WRAP, jb.FILTER_GLASS_10MM))

    def test_golden_paper_filters(self):
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_GOLDEN, jb.FILTER_GLASS_10MM))
        self.assertFalse(jb.is_filter_allowed(jb.PAPER_GOLDEN, jb.FILTER_GLASS_12MM))

    def test_custom_paper_filter_follows_length(self):
        self.assertFalse(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_PAPER_SMALL, None))
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_PAPER_SMALL, 12))
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_GLASS_10MM, 12))
        self.assertFalse(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_PAPER_SMALL, 14))
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_PAPER_MEDIUM, 16))
        self.assertTrue(jb.is_filter_allowed(jb.PAPER_CUSTOM, jb.FILTER_PAPER_LARGE, 18))

    def test_available_filters_for_golden(self):
        types = [f["type"] for f in jb.get_available_filters(jb.PAPER_GOLDEN)]
        self.assertEqual(
            types,
            [jb.FILTER_PAPER_SMALL, jb.FILTER_PAPER_MEDIUM, jb.FILTER_PAPER_LARGE, jb.FILTER_GLASS_10MM],
        )


class DosageTests(unittest.TestCase):
    def test_custom_paper_dosage(self):
        dosage = jb.get_custom_paper_dosage(20)
        self.assertEqual(dosage["filter_length"], 5.0)
        self.assertEqual(dosage["effective_space"], 15.0)
        self.assertEqual(dosage["internal_capacity"], 5.8)

    def test_tobacco_only_for_hash_only_joints(self):
        hash_only = Filling(hash=[FillingPortion(name="Hash", weight=1.0)])
        self.assertTrue(jb.is_tobacco_required(hash_only))
        self.assertEqual(jb.calculate_required_tobacco(hash_only), 2.0)

        mixed = Filling(
            flower=[FillingPortion(name="Flower", weight=0.5)],
            hash=[FillingPortion(name="Hash", weight=0.5)],
        )
        self.assertFalse(jb.is_tobacco_required(mixed))
        self.assertEqual(jb.calculate_required_tobacco(mixed), 0.0)

        with_worm = Filling(hash=[FillingPortion(name="Hash", weight=0.5)], worm=AddOn(name="Worm"))
        self.assertFalse(jb.is_tobacco_required(with_worm))

    def test_worm_takes_no_capacity(self):
        filling = Filling(
            flower=[FillingPortion(name="A", weight=0.3), FillingPortion(name="B", weight=0.4)],
            worm=AddOn(name="Worm", weight=1.0),
        )
        self.assertEqual(jb.calculate_total_filling(filling), 0.7)

    def test_capacity_defaults_per_paper(self):
        empty = Filling()
        self.assertEqual(jb.max_capacity(PaperChoice(type=jb.PAPER_PRE_ROLLED), empty), 0.4)
        self.assertEqual(jb.max_capacity(PaperChoice(type=jb.PAPER_HEMP_WRAP), empty), 2.0)
        self.assertEqual(jb.max_capacity(PaperChoice(type=jb.PAPER_GOLDEN), empty), 1.0)
        self.assertEqual(jb.max_capacity(PaperChoice(type=jb.PAPER_CUSTOM, custom_length=20), empty), 5.8)
        self.assertEqual(jb.max_capacity(PaperChoice(type=jb.PAPER_CUSTOM), empty), 0.0)


class ValidationTests(unittest.TestCase):
    def test_valid_configuration(self):
        config = golden_joint(flower=[FillingPortion(name="Flower", weight=0.8, price_per_gram_cents=25000)])
        self.assertEqual(jb.validate_configuration(config), {"is_valid": True, "errors": []})

    def test_empty_configuration(self):
        result = jb.validate_configuration(JointConfig())
        self.assertFalse(result["is_valid"])
        self.assertIn("Please select a paper type", result["errors"])
        self.assertIn("Please add at least some flower or hash", result["errors"])

    def test_filter_required_except_for_cones(self):
        config = golden_joint(flower=[FillingPortion(name="Flower", weight=0.5)])
        config.filter = None
        self.assertIn("Please select a filter", jb.validate_configuration(config)["errors"])

        cone = JointConfig(
            paper=PaperChoice(type=jb.PAPER_PRE_ROLLED, name="Cone"),
            filling=Filling(flower=[FillingPortion(name="Flower", weight=0.4)]),
        )
        self.assertTrue(jb.validate_configuration(cone)["is_valid"])

    def test_disallowed_filter(self):
        config = JointConfig(
            paper=PaperChoice(type=jb.PAPER_CUSTOM, name="Custom", custom_length=14, capacity=4.0),
            filter=FilterChoice(type=jb.FILTER_PAPER_SMALL, name="Paper Filter (Small)"),
            filling=Filling(flower=[FillingPortion(name="Flower", weight=1.0)]),
        )
        self.assertEqual(
            jb.validate_configuration(config)["errors"],
            ["Paper Filter (Small) is not available for this paper"],
        )

    def test_no_worm_in_cones(self):
        cone = JointConfig(
            paper=PaperChoice(type=jb.PAPER_PRE_ROLLED, name="Cone"),
            filling=Filling(flower=[FillingPortion(name="Flower", weight=0.4)], worm=AddOn(name="Worm")),
        )
        self.assertIn(
            "Internal options are not available for pre-rolled cones",
            jb.validate_configuration(cone)["errors"],
        )

    def test_hash_only_needs_tobacco(self):
        config = golden_joint(hash=[FillingPortion(name="Hash", weight=1.0)])
        self.assertEqual(
            jb.validate_configuration(config)["errors"],
            ["Hash-only joint requires 2.0g of tobacco"],
        )
        config.filling.tobacco = 2.0
        self.assertTrue(jb.validate_configuration(config)["is_valid"])

    def test_capacity_allows_ten_percent_over(self):
        config = golden_joint(flower=[FillingPortion(name="Flower", weight=1.05)])
        self.assertTrue(jb.validate_configuration(config)["is_valid"])

        config.filling.flower = [FillingPortion(name="Flower", weight=1.2)]
        self.assertEqual(
            jb.validate_configuration(config)["errors"],
            ["Filling exceeds capacity (1.2g / 1g)"],
        )

    def test_single_external_top_up(self):
        config = golden_joint(flower=[FillingPortion(name="Flower", weight=0.5)])
        config.external = External(coating=AddOn(name="Kief"), wrap=AddOn(name="Hash Wrap"))
        self.assertIn("Only one external top-up is allowed", jb.validate_configuration(config)["errors"])


class PricingTests(unittest.TestCase):
    def test_total_price(self):
        config = golden_joint(
            flower=[FillingPortion(name="Flower", weight=0.8, price_per_gram_cents=25000)],
            worm=AddOn(name="Rosin Worm", price_cents=30000),
        )
        config.external = External(coating=AddOn(name="Kief", price_cents=20000))
        # 15000 paper + 15000 filter + 20000 flower + 30000 worm + 20000 coating
        self.assertEqual(jb.calculate_total_price(config), 100000)

    def test_describe_configuration(self):
        config = golden_joint(flower=[FillingPortion(name="House Flower", weight=0.8)])
        details = jb.describe_configuration(config)
        self.assertEqual(details[0], "Paper: Golden Paper")
        self.assertIn("Capacity: 1.0g", details)
        self.assertIn("Filter: Glass Filter (10mm)", details)
        self.assertIn("Flower: House Flower (0.8g)", details)

    def test_config_dict_round_trip(self):
        config = golden_joint(flower=[FillingPortion(name="Flower", weight=0.8, price_per_gram_cents=25000)])
        restored = JointConfig.from_dict(config.to_dict())
        self.assertEqual(restored, config)


if __name__ == "__main__":
    unittest.main()

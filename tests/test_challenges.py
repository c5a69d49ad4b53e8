from __future__ import annotations

import random
import unittest
from datetime import datetime, timedelta

from analysis.challenges import CHALLENGE_CATALOG, ChallengeGenerator
from domain.models import Category, ChallengeKind
from domain.schemas import Budget, Challenge, Transaction

NOW = datetime(2024, 5, 20, 12, 0)


class _FirstChoice(random.Random):
    def choice(self, seq):
        return seq[0]


def _txn(id: str, when: datetime, amount: float, category: Category) -> Transaction:
    return Transaction(id=id, amount=amount, category=category, description=id, date=when)


def _completed(kind: ChallengeKind, category: Category | None = None) -> Challenge:
    return Challenge(
        id=f"done-{kind.value}-{category.value if category else 'general'}",
        title="done",
        description="done",
        kind=kind,
        target_category=category,
        duration_days=7,
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 8),
        progress=1,
        streak=7,
        completed=True,
    )


def _coffee_spike() -> list[Transaction]:
    return [
        _txn("c-prev", datetime(2024, 5, 8, 10, 0), 1000, Category.COFFEE),
        _txn("c1", datetime(2024, 5, 15, 12, 0), 1500, Category.COFFEE),
        _txn("c2", datetime(2024, 5, 18, 12, 0), 1500, Category.COFFEE),
    ]


class ChallengeGeneratorTests(unittest.TestCase):
    def test_catalog_covers_category_and_general_challenges(self) -> None:
        kinds = {blueprint.kind for blueprint in CHALLENGE_CATALOG}

        self.assertGreaterEqual(len(CHALLENGE_CATALOG), 6)
        self.assertEqual(kinds, {ChallengeKind.CATEGORY, ChallengeKind.SPENDING, ChallengeKind.SAVING})
        self.assertTrue(all(blueprint.badge is not None for blueprint in CHALLENGE_CATALOG))

    def test_weekly_spike_targets_the_category(self) -> None:
        generator = ChallengeGenerator(rng=_FirstChoice(), now=lambda: NOW)

        challenge = generator.generate(_coffee_spike(), [], [])

        self.assertIsNotNone(challenge)
        self.assertEqual(challenge.kind, ChallengeKind.CATEGORY)
        self.assertEqual(challenge.target_category, Category.COFFEE)
        self.assertEqual(challenge.target_amount, 2100)
        self.assertEqual(challenge.start_date, NOW)
        self.assertEqual(challenge.end_date, NOW + timedelta(days=7))
        self.assertEqual(challenge.badge.id, "coffee-breaker")

    def test_budget_pressure_marks_problem_category(self) -> None:
        generator = ChallengeGenerator(now=lambda: NOW)
        budget = Budget(id="b1", category=Category.SHOPPING, limit=1000, start_date="2024-05-01", end_date="2024-05-31")
        txns = [_txn("s1", datetime(2024, 5, 2, 12, 0), 800, Category.SHOPPING)]

        problems = generator.find_problem_categories(txns, [budget])
        eligible = {b.target_category for b in generator.eligible_blueprints(txns, [budget], [])}

        self.assertIn(Category.SHOPPING, problems)
        self.assertIn(Category.SHOPPING, eligible)
        self.assertNotIn(Category.COFFEE, eligible)

    def test_completed_challenges_are_not_offered_again(self) -> None:
        generator = ChallengeGenerator(now=lambda: NOW)
        completed = [
            _completed(ChallengeKind.SPENDING),
            _completed(ChallengeKind.SAVING),
            _completed(ChallengeKind.CATEGORY, Category.COFFEE),
        ]

        self.assertIsNone(generator.generate(_coffee_spike(), [], completed))

    def test_spending_challenge_targets_reduced_daily_average(self) -> None:
        generator = ChallengeGenerator(rng=_FirstChoice(), now=lambda: NOW)
        txns = [
            _txn("o1", datetime(2024, 5, 1, 12, 0), 3000, Category.OTHER),
            _txn("o2", datetime(2024, 5, 5, 12, 0), 3000, Category.OTHER),
            _txn("o3", datetime(2024, 5, 10, 12, 0), 3000, Category.OTHER),
        ]

        challenge = generator.generate(txns, [], [_completed(ChallengeKind.SAVING)])

        self.assertEqual(challenge.kind, ChallengeKind.SPENDING)
        self.assertIsNone(challenge.target_category)
        self.assertEqual(challenge.target_amount, 210)

    def test_random_pick_stays_within_eligible_set(self) -> None:
        for seed in range(10):
            generator = ChallengeGenerator(rng=random.Random(seed), now=lambda: NOW)
            challenge = generator.generate([], [], [])
            self.assertIn(challenge.kind, {ChallengeKind.SPENDING, ChallengeKind.SAVING})
            if challenge.kind == ChallengeKind.SAVING:
                self.assertIsNone(challenge.target_amount)

    def test_same_seed_gives_same_pick(self) -> None:
        first = ChallengeGenerator(rng=random.Random(7), now=lambda: NOW).generate(_coffee_spike(), [], [])
        second = ChallengeGenerator(rng=random.Random(7), now=lambda: NOW).generate(_coffee_spike(), [], [])

        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()

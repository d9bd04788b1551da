"""Scenario repository including turns and expectations."""

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from promptarena.db.models.scenario import ScenarioExpectationRow, ScenarioRow, ScenarioTurnRow
from promptarena.repositories.base import BaseRepository


class ScenarioRepository(BaseRepository[ScenarioRow]):
    model = ScenarioRow
    pk_field = "scenario_id"

    async def get_full(self, org_id: str, scenario_id: str) -> ScenarioRow | None:
        """Scenario with turns (ordered) and their expectations eagerly loaded."""
        stmt = (
            select(ScenarioRow)
            .where(
                ScenarioRow.org_id == org_id,
                ScenarioRow.scenario_id == scenario_id,
            )
            .options(selectinload(ScenarioRow.turns).selectinload(ScenarioTurnRow.expectations))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, org_id: str, name: str) -> ScenarioRow | None:
        return await self.first(ScenarioRow.org_id == org_id, ScenarioRow.name == name)

    async def list_with_turn_counts(
        self,
        org_id: str,
        status: str | None = None,
        locale: str | None = None,
    ) -> list[tuple[ScenarioRow, int]]:
        turn_counts = (
            select(ScenarioTurnRow.scenario_id, func.count(ScenarioTurnRow.turn_id).label("turn_count"))
            .group_by(ScenarioTurnRow.scenario_id)
            .subquery()
        )
        stmt = (
            select(ScenarioRow, func.coalesce(turn_counts.c.turn_count, 0))
            .outerjoin(turn_counts, turn_counts.c.scenario_id == ScenarioRow.scenario_id)
            .where(ScenarioRow.org_id == org_id)
        )
        if status:
            stmt = stmt.where(ScenarioRow.status == status)
        if locale:
            stmt = stmt.where(ScenarioRow.locale == locale)
        stmt = stmt.order_by(ScenarioRow.updated_at.desc())
        result = await self.session.execute(stmt)
        return [(row, int(count)) for row, count in result.all()]

    async def add_turns(self, scenario_id: str, turns: list[dict]) -> list[ScenarioTurnRow]:
        """Insert turns (and nested expectations) for a scenario.

        Each dict carries ``order_index``, ``turn_type``, ``user_text`` and an
        ``expectations`` list of column dicts.
        """
        rows: list[ScenarioTurnRow] = []
        for turn in turns:
            row = ScenarioTurnRow(
                scenario_id=scenario_id,
                order_index=turn["order_index"],
                turn_type=turn["turn_type"],
                user_text=turn.get("user_text"),
                expectations=[ScenarioExpectationRow(**exp) for exp in turn.get("expectations", [])],
            )
            self.session.add(row)
            rows.append(row)
        await self.session.flush()
        return rows

    async def delete_turns(self, scenario_id: str) -> None:
        turn_ids = select(ScenarioTurnRow.turn_id).where(ScenarioTurnRow.scenario_id == scenario_id)
        await self.session.execute(
            delete(ScenarioExpectationRow).where(ScenarioExpectationRow.turn_id.in_(turn_ids))
        )
        await self.session.execute(delete(ScenarioTurnRow).where(ScenarioTurnRow.scenario_id == scenario_id))

    async def list_user_turns_containing(self, org_id: str, needle: str) -> list[tuple[ScenarioTurnRow, ScenarioRow]]:
        stmt = (
            select(ScenarioTurnRow, ScenarioRow)
            .join(ScenarioRow, ScenarioRow.scenario_id == ScenarioTurnRow.scenario_id)
            .where(
                ScenarioRow.org_id == org_id,
                ScenarioTurnRow.user_text.contains(needle, autoescape=True),
            )
            .order_by(ScenarioRow.name.asc(), ScenarioTurnRow.order_index.asc())
        )
        result = await self.session.execute(stmt)
        return [(turn, scenario) for turn, scenario in result.all()]

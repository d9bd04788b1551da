"""Scenario, turn and expectation tables."""

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promptarena.db.base import ID_LENGTH, Base, OrgScopedMixin


class ScenarioRow(Base, OrgScopedMixin):
    __tablename__ = "scenarios"
    __table_args__ = (UniqueConstraint("org_id", "name", name="uq_scenarios_org_name"),)

    scenario_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    locale: Mapped[str] = mapped_column(String(20), nullable=False, default="en")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    turns: Mapped[list["ScenarioTurnRow"]] = relationship(
        back_populates="scenario",
        order_by="ScenarioTurnRow.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ScenarioTurnRow(Base):
    __tablename__ = "scenario_turns"
    __table_args__ = {"sqlite_autoincrement": True}

    turn_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scenario_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("scenarios.scenario_id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    turn_type: Mapped[str] = mapped_column(String(20), nullable=False)
    user_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    scenario: Mapped[ScenarioRow] = relationship(back_populates="turns")
    expectations: Mapped[list["ScenarioExpectationRow"]] = relationship(
        back_populates="turn",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ScenarioExpectationRow(Base):
    __tablename__ = "scenario_expectations"

    expectation_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    turn_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("scenario_turns.turn_id", ondelete="CASCADE"), nullable=False, index=True
    )
    expectation_key: Mapped[str] = mapped_column(String(100), nullable=False)
    expectation_type: Mapped[str] = mapped_column(String(30), nullable=False)
    args: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    turn: Mapped[ScenarioTurnRow] = relationship(back_populates="expectations")

"""Built-in demo scenarios available to every organization."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BuiltinScenario:
    key: str
    name: str
    description: str
    title: str
    seed: list[dict[str, str]] = field(default_factory=list)

    @property
    def user_turns(self) -> list[str]:
        return [m["content"] for m in self.seed if m["role"] == "user"]


BUILTIN_SCENARIOS: dict[str, BuiltinScenario] = {
    s.key: s
    for s in (
        BuiltinScenario(
            key="beauty-salon",
            name="Customer x Beauty Salon",
            description="Client booking a haircut appointment with a beauty salon receptionist.",
            title="Booking a haircut appointment",
            seed=[
                {"role": "user", "content": "Hi! I'd like to book a haircut this Friday after 5pm if possible."},
                {
                    "role": "assistant",
                    "content": "Of course! May I have your name, preferred stylist, and any add-on services?",
                },
                {"role": "user", "content": "I'm Alex. No stylist preference. Haircut + beard trim, please."},
            ],
        ),
        BuiltinScenario(
            key="food-delivery",
            name="Customer x Food Delivery",
            description="User tracking a late order with a food delivery support agent.",
            title="Where is my order?",
            seed=[
                {"role": "user", "content": "My order is 20 minutes late. Can you check the status?"},
                {"role": "assistant", "content": "I'm checking that now. Could you share your order number, please?"},
            ],
        ),
    )
}

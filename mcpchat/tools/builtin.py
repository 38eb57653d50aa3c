import asyncio
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .registry import LocalTool


class NumberPair(BaseModel):
    a: float
    b: float


class ChartDataset(BaseModel):
    label: str
    data: List[float]
    borderColor: Optional[str] = None
    backgroundColor: Optional[str] = None


class ChartData(BaseModel):
    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)
    title: Optional[str] = None


class ChartRequest(BaseModel):
    type: Literal["line", "bar"] = "bar"
    data: ChartData


def _number(value: float) -> int | float:
    # Keep whole results integral so "2 + 3" reads back as 5, not 5.0.
    return int(value) if float(value).is_integer() else value


def calculate_sum(params: NumberPair) -> int | float:
    return _number(params.a + params.b)


def make_is_greater_than(delay: float):
    async def is_greater_than(params: NumberPair) -> bool:
        if delay > 0:
            await asyncio.sleep(delay)
        return params.a > params.b

    return is_greater_than


def generate_chart(params: ChartRequest) -> Dict[str, Any]:
    return params.model_dump(exclude_none=True)


def builtin_tools(*, comparison_delay: float = 3.0, chart_tool: bool = False) -> List[LocalTool]:
    tools = [
        LocalTool(
            "calculateSum",
            "Calculate the sum of two numbers",
            NumberPair,
            calculate_sum,
        ),
        LocalTool(
            "isGreaterThan",
            "Check if a is greater than b",
            NumberPair,
            make_is_greater_than(comparison_delay),
            reports_progress=True,
        ),
    ]
    if chart_tool:
        tools.append(
            LocalTool(
                "generateChart",
                "Render a line or bar chart for the user. The chart is displayed to the user as soon as "
                "this tool returns; treat the result as final and do not restate or analyse its data.",
                ChartRequest,
                generate_chart,
            )
        )
    return tools

"""Arithmetic tool: whitelisted characters, evaluated by a restricted AST walker"""

import ast
import math
import operator
import re
import logging
from typing import Union

from .base import BaseTool, ToolName

logger = logging.getLogger(__name__)

# Checked before anything is parsed or evaluated
ALLOWED_EXPRESSION = re.compile(r'^[0-9+\-*/().\s]+$')

# Upper bound on the decimal digits of any operand or intermediate result
MAX_DIGITS = 1000
MAX_BITS = int(MAX_DIGITS * math.log2(10)) + 1

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Pow: operator.pow,
}

UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

Number = Union[int, float]


def evaluate(expression: str) -> Number:
    """
    Evaluate an arithmetic expression.

    Raises SyntaxError / ZeroDivisionError / ValueError / OverflowError on
    malformed, undefined or oversized input; callers treat all of them as a
    calculation error.
    """
    tree = ast.parse(expression.strip(), mode="eval")
    return _eval_node(tree.body)


def _check_size(value: Number) -> Number:
    if isinstance(value, complex):
        raise ValueError("结果不是实数")
    if isinstance(value, int) and value.bit_length() > MAX_BITS:
        raise ValueError(f"数值过大（超过 {MAX_DIGITS} 位）")
    return value


def _check_power(base: Number, exponent: Number) -> None:
    """Reject powers whose result would exceed MAX_DIGITS, before computing them"""
    magnitude = abs(base)
    if magnitude <= 1 or exponent <= 0:
        return
    if exponent * math.log10(magnitude) > MAX_DIGITS:
        raise ValueError(f"结果过大: {base} ** {exponent}")


def _eval_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return _check_size(node.value)

    if isinstance(node, ast.UnaryOp) and type(node.op) in UNARY_OPERATORS:
        return UNARY_OPERATORS[type(node.op)](_eval_node(node.operand))

    if isinstance(node, ast.BinOp) and type(node.op) in BINARY_OPERATORS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _check_size(BINARY_OPERATORS[type(node.op)](left, right))

    raise ValueError(f"不支持的表达式: {ast.dump(node)[:50]}")


def format_number(value: Number) -> str:
    """Render integral floats without a trailing .0"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CalculatorTool(BaseTool):
    """calculate: evaluate `+ - * / ( )` arithmetic"""

    name = ToolName.CALCULATE
    description = "执行数学计算"
    parameters = {
        "expression": {
            "type": "string",
            "description": "数学表达式，例如：2+3*4、(1+2)/3"
        }
    }
    required_params = ["expression"]

    async def execute(self, expression: str = "", **kwargs) -> str:
        expression = str(expression or "")
        if not expression.strip():
            return "错误: 缺少计算表达式"

        if not ALLOWED_EXPRESSION.match(expression):
            logger.warning(f"Rejected expression with disallowed characters: {expression[:100]}")
            return "错误: 表达式包含不允许的字符"

        try:
            value = format_number(evaluate(expression))
        except (SyntaxError, ZeroDivisionError, ValueError, OverflowError, TypeError, RecursionError) as e:
            return f"计算错误: {e}"

        return f"计算结果: {expression.strip()} = {value}"

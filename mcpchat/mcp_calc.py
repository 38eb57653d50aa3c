from fastmcp import FastMCP

mcp = FastMCP("mcpchat calculator")


@mcp.tool()
def multiply(a: float, b: float) -> float:
    """Multiply two numbers."""
    return a * b


@mcp.tool()
def divide(a: float, b: float) -> float:
    """Divide a by b. Fails when b is zero."""
    if b == 0:
        raise ValueError("Cannot divide by zero")
    return a / b


@mcp.tool()
def power(base: float, exponent: float) -> float:
    """Raise base to the given exponent."""
    return base**exponent


if __name__ == "__main__":
    # Defaults to stdio transport; override with transport="http" if needed.
    mcp.run()

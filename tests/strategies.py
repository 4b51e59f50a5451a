"""Hypothesis strategies for revgraph.

Provides small text buffers for diff properties and random commit DAG
shapes for layout properties.
"""

from hypothesis import strategies as st

# Few distinct lines so that generated buffers share plenty of context
line_text = st.sampled_from(["alpha", "beta", "gamma", "delta", "x = 1", "x = 2", ""])

text_lines = st.lists(line_text, max_size=20)


@st.composite
def text_buffers(draw) -> bytes:
    """A buffer of newline-terminated lines, optionally missing the last newline."""
    lines = draw(text_lines)
    content = "".join(line + "\n" for line in lines)
    if content and draw(st.booleans()):
        content = content[:-1]
    return content.encode()


@st.composite
def dag_shapes(draw, max_commits: int = 8) -> list[list[int]]:
    """Parent lists for a DAG: entry i holds indices of earlier commits.

    An empty list means the commit sits directly on the root commit.
    """
    count = draw(st.integers(min_value=1, max_value=max_commits))
    shape: list[list[int]] = []
    for i in range(count):
        if i == 0:
            shape.append([])
            continue
        parents = draw(
            st.lists(st.integers(min_value=-1, max_value=i - 1), min_size=1, max_size=2, unique=True)
        )
        shape.append([p for p in parents if p >= 0])
    return shape

from pathlib import Path

from luadisasm.graph import Digraph, Edge


def _sample() -> Digraph:
    graph = Digraph("cfg")
    graph.add_instance("a", "Block 0")
    graph.add_instance("b", 'say "hi"')
    graph.add_instance("c", "End")
    graph.add_edge("a", "b", "jump")
    graph.add_edge("a", "c")
    graph.add_edge("b", "c")
    return graph


def test_render_emits_quoted_nodes_and_labelled_edges() -> None:
    text = _sample().render()

    assert text.splitlines() == [
        "digraph cfg {",
        '\t"a" [ label = "Block 0" ];',
        '\t"b" [ label = "say \\"hi\\"" ];',
        '\t"c" [ label = "End" ];',
        '\t"a" -> "b" [ label = "jump" ];',
        '\t"a" -> "c";',
        '\t"b" -> "c";',
        "}",
    ]


def test_indegrees_follow_insertion_order() -> None:
    graph = _sample()

    assert graph.indegrees_of(0) == ["a"]
    assert graph.indegrees_of(1) == ["b"]
    assert graph.indegrees_of(2) == ["c"]


def test_edges_and_instances_are_copies() -> None:
    graph = _sample()
    graph.instances["z"] = "ignored"

    assert "z" not in graph.instances
    assert graph.edges[0] == Edge("a", "b", "jump")


def test_write_uses_render(tmp_path: Path) -> None:
    graph = _sample()
    path = tmp_path / "graph.dot"

    graph.write(path)

    assert path.read_text("utf-8") == str(graph)

import logging
import weakref
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .tensor import Tensor

logger = logging.getLogger(__name__)

Gradients = Dict[int, NDArray[Any]]


class Edge:
    """
    A dependency of ``dst`` on ``src``: ``dst`` was computed from ``src``.

    ``dst`` is held weakly, so a long-lived input such as a parameter does not
    keep every result computed from it alive.
    """

    def __init__(self, src: "Node", dst: "Node"):
        self.src = src
        self._dst = weakref.ref(dst)

    @property
    def dst(self) -> Optional["Node"]:
        return self._dst()


class Node:
    """Graph vertex wrapping one tensor, with its incoming and outgoing edges."""

    def __init__(self, tensor: "Tensor"):
        self.tensor = tensor
        self.in_edges: List[Edge] = []
        self.out_edges: List[Edge] = []

    @property
    def is_leaf(self) -> bool:
        return not self.in_edges


class AutogradEngine:
    """
    Records which tensors were computed from which and runs reverse-mode
    differentiation over that record.

    Nodes are keyed by ``id(tensor)`` and held weakly: each tensor owns its
    node, and a node's incoming edges own the nodes of its inputs. A graph
    therefore lives exactly as long as the tensors computed in it, and
    results that are dropped (for example inference outputs) are forgotten
    without a :meth:`clear`. Gradients are pushed from outputs to inputs
    through each tensor's ``_backward_fn`` and summed into ``.grad`` on
    leaves only.
    """

    def __init__(self) -> None:
        self._nodes: "weakref.WeakValueDictionary[int, Node]" = weakref.WeakValueDictionary()
        self._currently_computing_gradients = False

    def register_tensor(self, tensor: "Tensor") -> None:
        self.node(tensor)

    def node(self, tensor: "Tensor") -> Node:
        """Returns the node for ``tensor``, registering the tensor first if needed."""
        key = id(tensor)
        node = tensor._node
        # A node left over from before the last clear() is replaced
        if node is None or self._nodes.get(key) is not node:
            node = Node(tensor)
            tensor._node = node
            self._nodes[key] = node
        return node

    def add_edge(self, src: "Tensor", dst: "Tensor") -> None:
        """
        Records that ``dst`` was computed from ``src``.

        Either tensor may predate the last :meth:`clear`; it is registered again.
        """
        src_node, dst_node = self.node(src), self.node(dst)
        edge = Edge(src_node, dst_node)
        # Edges into results that have since been released are dropped
        src_node.out_edges[:] = [e for e in src_node.out_edges if e.dst is not None]
        src_node.out_edges.append(edge)
        dst_node.in_edges.append(edge)

    def backward(self, tensor: "Tensor", gradient: Optional[NDArray[Any]] = None) -> None:
        """
        Propagates ``gradient`` (ones by default) from ``tensor`` to every
        leaf it depends on.

        Raises:
            RuntimeError: If called while another backward pass is running,
                or if the graph contains a cycle
        """
        if self._currently_computing_gradients:
            raise RuntimeError("Nested gradient computation detected")

        self._currently_computing_gradients = True
        try:
            if gradient is None:
                gradient = np.ones(tensor.shape, dtype=np.float64)
            grads: Gradients = {id(tensor): gradient}

            for node in reversed(self._topological_sort(tensor)):
                current = node.tensor
                grad = grads.get(id(current))
                if grad is None or not current.requires_grad:
                    continue

                if current._backward_fn is not None:
                    current._backward_fn(grad, grads)

                if node.is_leaf:
                    if current.grad is None:
                        current.zero_grad()
                    current.grad = current.grad + np.reshape(grad, current.shape)
        finally:
            self._currently_computing_gradients = False

    def _topological_sort(self, start_tensor: "Tensor") -> List[Node]:
        """
        Orders the ancestors of ``start_tensor`` so every node follows its inputs.

        Raises:
            RuntimeError: If the graph contains a cycle
        """
        order: List[Node] = []
        done = set()
        on_path = set()

        start = self.node(start_tensor)
        stack: List[Tuple[Node, Iterator[Edge]]] = [(start, iter(start.in_edges))]
        on_path.add(start)

        while stack:
            node, pending = stack[-1]
            for edge in pending:
                src = edge.src
                if src in on_path:
                    raise RuntimeError("Cycle detected in computation graph")
                if src not in done:
                    on_path.add(src)
                    stack.append((src, iter(src.in_edges)))
                    break
            else:
                stack.pop()
                on_path.discard(node)
                done.add(node)
                order.append(node)

        return order

    def clear(self) -> None:
        """Forgets the recorded graph."""
        logger.debug("Clearing autograd graph with %d nodes", len(self._nodes))
        self._nodes.clear()


# Global autograd engine instance
_autograd_engine = AutogradEngine()


def get_autograd_engine() -> AutogradEngine:
    """Returns the global autograd engine instance."""
    return _autograd_engine

# Threads sharing one forest: inserts, moves and audits interleaved

import random
import threading

import pytest

from nestset.exceptions import InvalidParentError
from nestset.node import Node


@pytest.mark.parametrize("workers", [2, 4])
def test_concurrent_inserts_and_moves(forest, workers):
    root = forest.make_root(Node(name="root"))
    seeds = [forest.last_child_of(Node(name=f"s{i}"), root).node for i in range(4)]
    per_thread = 10
    errors = []
    audits = []

    def inserter(idx):
        rng = random.Random(idx)
        try:
            for i in range(per_thread):
                parent = rng.choice([root, *seeds])
                forest.child_of(Node(name=f"i{idx}-{i}"), parent, rng.choice(["first", "last"]))
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)

    def mover(idx):
        rng = random.Random(100 + idx)
        try:
            for _ in range(per_thread):
                node = rng.choice(seeds)
                target = rng.choice([root, *[s for s in seeds if s.id != node.id]])
                try:
                    forest.child_of(node, target, rng.choice(["first", "last"]))
                except InvalidParentError:
                    # Another mover put the target below `node` meanwhile
                    pass
                if rng.random() < 0.2:
                    forest.make_root(node)
        except Exception as e:
            errors.append(e)

    def auditor():
        try:
            for _ in range(per_thread):
                with forest.store.session():
                    audits.append(forest.check(raise_on_error=False))
        except Exception as e:
            errors.append(e)

    threads = []
    for i in range(workers):
        threads.append(threading.Thread(target=inserter, args=(i,)))
        threads.append(threading.Thread(target=mover, args=(i,)))
    threads.append(threading.Thread(target=auditor))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(violations == [] for violations in audits)
    assert len(forest) == 1 + len(seeds) + workers * per_thread
    assert forest.check() == []
    for seed in seeds:
        assert forest.reload(seed).name == seed.name


def test_concurrent_roots_get_distinct_tree_ids(forest):
    tree_ids = []
    lock = threading.Lock()

    def maker(idx):
        for i in range(10):
            root = forest.make_root(Node(name=f"r{idx}-{i}"))
            with lock:
                tree_ids.append(root.tree_id)

    threads = [threading.Thread(target=maker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(tree_ids) == list(range(1, 41))
    assert forest.check() == []

import pytest

from nlmin import LBFGSConfig, default_chain


@pytest.mark.parametrize(
    "solver, names",
    [
        ("Newton", ["SparseNewton", "RegularizedSparseNewton", "GradientDescent"]),
        ("DenseNewton", ["DenseNewton", "RegularizedDenseNewton", "GradientDescent"]),
        ("BFGS", ["BFGS", "GradientDescent"]),
        ("L-BFGS", ["LBFGS", "GradientDescent"]),
        ("GradientDescent", ["GradientDescent"]),
    ],
)
def test_default_chains(solver, names):
    assert [strategy.name for strategy in default_chain(solver)] == names


def test_chain_receives_configuration():
    chain = default_chain("L-BFGS", lbfgs=LBFGSConfig(history_size=2))
    assert chain[0].config.history_size == 2


def test_unknown_solver_rejected():
    with pytest.raises(ValueError, match="Unrecognized solver type"):
        default_chain("NelderMead")

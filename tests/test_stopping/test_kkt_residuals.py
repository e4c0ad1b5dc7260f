import numpy as np
import pytest

from stopping import NLPAtX, PreconditionError
from stopping.kkt import KKT, is_kkt_optimal, kkt_residuals, unconstrained_residual
from stopping.models import FunctionModel


def test_unconstrained_residual_is_gradient_inf_norm(quadratic_model):
    state = NLPAtX(np.zeros(2), gx=np.array([-3.0, 1.0]))
    assert unconstrained_residual(quadratic_model, state) == 3.0
    assert unconstrained_residual(quadratic_model, state, ord=1) == 4.0


def test_unconstrained_residual_requires_gradient(quadratic_model):
    with pytest.raises(PreconditionError):
        unconstrained_residual(quadratic_model, NLPAtX(np.zeros(2)))


def test_kkt_residuals_at_optimum(equality_model):
    x = np.array([-1.0, -1.0])
    state = NLPAtX(
        x,
        gx=equality_model.grad(x),
        cx=equality_model.cons(x),
        Jx=equality_model.jac(x),
    )
    residuals = kkt_residuals(equality_model, state)
    assert residuals["dual"] <= 1e-12
    assert residuals["primal_cons"] == 0.0
    assert is_kkt_optimal(equality_model, state)


def test_kkt_detects_infeasibility(equality_model):
    x = np.array([1.0, 0.0])
    state = NLPAtX(
        x,
        gx=equality_model.grad(x),
        cx=equality_model.cons(x),
        Jx=equality_model.jac(x),
    )
    optimality, feasibility = KKT(equality_model, state)
    assert feasibility == pytest.approx(1.0)
    assert optimality > 0.5
    assert not is_kkt_optimal(equality_model, state)


def test_kkt_uses_stored_multipliers(equality_model):
    x = np.array([-1.0, -1.0])
    state = NLPAtX(
        x,
        gx=np.array([1.0, 1.0]),
        mu=np.zeros(2),
        cx=np.array([2.0]),
        Jx=np.array([[-2.0, -2.0]]),
        lambda_=np.array([0.0]),
    )
    assert kkt_residuals(equality_model, state)["dual"] == pytest.approx(1.0)


def test_kkt_bound_with_wrong_sign_is_not_optimal():
    # minimize x subject to x <= 0: at x = 0 the gradient pushes into the interior
    model = FunctionModel(
        lambda x: float(x[0]),
        grad=lambda x: np.array([1.0]),
        x0=np.zeros(1),
        uvar=np.zeros(1),
    )
    state = NLPAtX(np.zeros(1), gx=np.array([1.0]))
    residuals = kkt_residuals(model, state)
    assert residuals["dual"] == pytest.approx(0.0)
    assert residuals["sign"] == pytest.approx(1.0)
    assert not is_kkt_optimal(model, state)

    # minimize -x subject to x <= 0 is solved at x = 0
    state.update(gx=np.array([-1.0]))
    assert is_kkt_optimal(model, state)


def test_kkt_reports_bound_violation():
    model = FunctionModel(
        lambda x: 0.0, grad=lambda x: np.zeros(2), x0=np.zeros(2), lvar=np.zeros(2)
    )
    state = NLPAtX(np.array([-0.5, 1.0]), gx=np.zeros(2))
    assert kkt_residuals(model, state)["primal_bounds"] == pytest.approx(0.5)


def test_kkt_requires_constraint_data(equality_model):
    with pytest.raises(PreconditionError):
        KKT(equality_model, NLPAtX(np.zeros(2), gx=np.ones(2)))
    with pytest.raises(PreconditionError):
        KKT(equality_model, NLPAtX(np.zeros(2), gx=np.ones(2), cx=np.zeros(1)))

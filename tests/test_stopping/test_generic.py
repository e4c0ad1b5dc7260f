import numpy as np
import pytest

from stopping import (
    GenericStopping,
    NLPAtX,
    PreconditionError,
    StoppingMeta,
    StoppingStatus,
    debug_context,
)
from stopping import generic as generic_module
from stopping.kkt import unconstrained_residual


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(generic_module.time, "monotonic", fake)
    return fake


def make_stopping(model, gx, **kwargs) -> GenericStopping:
    state = NLPAtX(np.zeros(2), fx=1.0, gx=np.asarray(gx, dtype=float))
    return GenericStopping(model, state, optimality_check=unconstrained_residual, **kwargs)


def test_initial_status_and_stop_before_start(quadratic_model):
    stp = make_stopping(quadratic_model, [1.0, 1.0])
    assert stp.status is StoppingStatus.UNSTARTED
    with pytest.raises(PreconditionError):
        stp.stop()


def test_start_records_baseline_without_terminating(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [0.0, 0.0])
    assert stp.start() is True
    assert stp.status is StoppingStatus.RUNNING
    assert stp.optimality0 == 0.0
    assert stp.current_state.current_time == 0.0

    stp = make_stopping(quadratic_model, [-2.0, 0.5], rtol=0.1)
    assert stp.start() is False
    assert stp.optimality0 == 2.0
    assert stp.optimality_tol == pytest.approx(0.2)


def test_start_updates_point(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0])
    stp.start(x0=np.array([3.0, 4.0]))
    assert np.allclose(stp.current_state.x, [3.0, 4.0])


def test_iteration_limit_makes_tired(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_iter=10)
    stp.start()
    result = stp.stop(iteration=9)
    assert not result.done
    optimal, unbounded, tired, _, info = stp.stop(iteration=10)
    assert tired and not optimal and not unbounded
    assert info.iteration_limit
    assert stp.status is StoppingStatus.TIRED


def test_time_limit_makes_tired(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_time=5.0)
    stp.start()
    clock.now += 4.0
    assert not stp.stop().tired
    clock.now += 1.0
    result = stp.stop()
    assert result.tired and result.info.time_limit
    assert result.elapsed_time == pytest.approx(5.0)
    assert stp.current_state.current_time == pytest.approx(5.0)


def test_evaluation_limits(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_cntrs={"neval_grad": 2})
    stp.start()
    quadratic_model.grad(np.zeros(2))
    assert not stp.stop().tired
    quadratic_model.grad(np.zeros(2))
    result = stp.stop()
    assert result.tired
    assert result.info.evaluation_limit == "neval_grad"
    assert stp.current_state.evals.neval_grad == 2

    quadratic_model.reset()
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_f=1)
    stp.start()
    quadratic_model.obj(np.zeros(2))
    assert stp.stop().info.evaluation_limit == "neval_obj"

    quadratic_model.reset()
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_eval=3)
    stp.start()
    for _ in range(3):
        quadratic_model.obj(np.zeros(2))
    assert stp.stop().info.evaluation_limit == "total"


def test_optimal_takes_priority_over_tired(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [0.0, 0.0], max_iter=1)
    stp.start()
    result = stp.stop(iteration=5)
    assert result.optimal and result.tired
    assert stp.status is StoppingStatus.OPTIMAL


def test_objective_below_threshold_is_unbounded(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], unbounded_threshold=1e10)
    stp.start()
    for k in range(1, 20):
        fx = -(10.0 ** k)
        result = stp.update_and_stop(fx=fx)
        if result.done:
            break
    assert result.unbounded and not result.optimal
    assert result.info.f_too_large
    assert stp.current_state.fx <= -1e10
    assert stp.status is StoppingStatus.UNBOUNDED


def test_large_iterate_is_unbounded(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], unbounded_x=1e3)
    stp.start()
    result = stp.update_and_stop(x=np.array([0.0, -2e3]))
    assert result.unbounded and result.info.x_too_large


def test_stop_is_idempotent_for_unchanged_state(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_iter=3)
    stp.start()
    first = stp.stop(iteration=2)
    second = stp.stop(iteration=2)
    assert first[:4] == second[:4]
    assert first.info == second.info

    stp.update_and_stop(iteration=3)
    repeated = [stp.stop() for _ in range(3)]
    assert all(result.tired for result in repeated)
    assert all(result.info == repeated[0].info for result in repeated)


def test_plain_stop_does_not_advance_iterations(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_iter=1)
    stp.start()
    outcomes = [stp.stop().tired for _ in range(5)]
    assert outcomes == [False] * 5
    assert stp.iteration == 0 and stp.nb_of_stop == 5


def test_elapsed_time_is_non_decreasing(quadratic_model):
    stp = make_stopping(quadratic_model, [1.0, 1.0])
    stp.start()
    times = [stp.stop().elapsed_time for _ in range(20)]
    assert times == sorted(times)
    assert times[0] >= 0.0


def test_update_and_stop_counts_iterations(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_iter=3)
    stp.start()
    outcomes = [stp.update_and_stop().tired for _ in range(4)]
    assert outcomes == [False, False, True, True]
    assert stp.iteration == 4
    assert stp.stop().info.iteration == 4
    stp.update_and_stop(iteration=10)
    assert stp.iteration == 10


def test_terminal_status_is_kept(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0], max_iter=1)
    stp.start()
    stp.stop(iteration=1)
    assert stp.status is StoppingStatus.TIRED
    result = stp.update_and_stop(iteration=1, gx=np.zeros(2))
    assert result.optimal
    assert stp.status is StoppingStatus.TIRED


def test_update_and_start_then_reinit(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0])
    assert stp.update_and_start(gx=np.zeros(2)) is True
    stp.stop()
    stp.reinit()
    assert stp.status is StoppingStatus.UNSTARTED
    assert stp.nb_of_stop == 0 and stp.iteration == 0
    stp.reinit(x=np.ones(2))
    assert stp.current_state.gx is None
    with pytest.raises(PreconditionError):
        stp.start()


def test_missing_state_fields_are_reported(quadratic_model, clock):
    stp = GenericStopping(
        quadratic_model, NLPAtX(np.zeros(2)), optimality_check=unconstrained_residual
    )
    with pytest.raises(PreconditionError):
        stp.start()


def test_generic_without_optimality_check_never_optimal(quadratic_model, clock):
    stp = GenericStopping(quadratic_model, NLPAtX(np.zeros(2)), max_iter=2)
    assert stp.start() is False
    result = stp.stop(iteration=2)
    assert not result.optimal and result.tired


def test_meta_and_keyword_overrides(quadratic_model):
    meta = StoppingMeta(max_iter=7)
    stp = GenericStopping(quadratic_model, NLPAtX(np.zeros(2)), meta, atol=1e-3)
    assert stp.meta.max_iter == 7 and stp.meta.atol == 1e-3
    assert meta.atol != 1e-3


def test_domain_error_is_reported(quadratic_model, clock):
    stp = make_stopping(quadratic_model, [1.0, 1.0])
    stp.start()
    result = stp.update_and_stop(fx=float("nan"))
    assert result.info.domain_error
    assert not result.unbounded


def test_debug_mode_rejects_nan_residual(quadratic_model, clock):
    stp = GenericStopping(
        quadratic_model,
        NLPAtX(np.zeros(2)),
        optimality_check=lambda problem, state: float("nan"),
    )
    stp.start()
    assert not stp.stop().optimal
    with debug_context(True):
        with pytest.raises(PreconditionError):
            stp.stop()

# tests/test_parameters/test_line_parameters.py
import numpy as np
import pytest

from tlsim_core import Quantity
from tlsim_core.parameters import (
    ConstantParameters,
    FunctionalParameters,
    ParameterDefinitionError,
    ParameterEvaluationError,
    ParameterExpression,
    ParameterProvider,
    extract_symbols,
    kinetic_inductance_parameters,
)

X = np.array([0.25, 0.75])
ZEROS = np.zeros(2)


class TestConstantParameters:

    def test_unit_strings_are_converted_to_si(self):
        params = ConstantParameters("1 uH/m", "400 pF/m", resistance="2 ohm/m", conductance="1 mS/m")
        result = params.evaluate(X)
        np.testing.assert_allclose(result.inductance, 1e-6)
        np.testing.assert_allclose(result.capacitance, 400e-12)
        np.testing.assert_allclose(result.resistance, 2.0)
        np.testing.assert_allclose(result.conductance, 1e-3)

    def test_plain_numbers_and_quantities(self):
        params = ConstantParameters(Quantity(250, "nH/m"), 100e-12)
        result = params.evaluate(X)
        np.testing.assert_allclose(result.inductance, 250e-9)
        np.testing.assert_allclose(result.resistance, 0.0)
        np.testing.assert_allclose(result.characteristic_impedance, 50.0)
        np.testing.assert_allclose(result.phase_velocity, 2e8)

    def test_position_profile(self):
        params = ConstantParameters(inductance=lambda x: 1e-6 * (1 + x), capacitance=400e-12)
        result = params.evaluate(X)
        np.testing.assert_allclose(result.inductance, [1.25e-6, 1.75e-6])

    def test_results_are_cached_per_discretization(self):
        calls = []

        def profile(x):
            calls.append(len(x))
            return 1e-6

        params = ConstantParameters(inductance=profile, capacitance=400e-12)
        first = params.evaluate(X)
        second = params.evaluate(X.copy())
        assert first is second
        assert calls == [2]
        params.evaluate(np.array([0.5]))
        assert calls == [2, 1]

    def test_is_a_provider(self):
        assert isinstance(ConstantParameters(1e-6, 4e-10), ParameterProvider)
        assert not ConstantParameters(1e-6, 4e-10).is_state_dependent

    @pytest.mark.parametrize("value", ["1 pF/m", "abc", float("inf")])
    def test_bad_inductance_values(self, value):
        with pytest.raises(ParameterDefinitionError) as excinfo:
            ConstantParameters(value, 400e-12)
        assert excinfo.value.parameter == "inductance"

    def test_non_finite_profile_is_reported_with_segment(self):
        params = ConstantParameters(inductance=lambda x: np.where(x > 0.5, np.nan, 1e-6), capacitance=4e-10)
        with pytest.raises(ParameterEvaluationError) as excinfo:
            params.evaluate(X)
        assert list(excinfo.value.bad_indices) == [1]
        assert "segment 1" in excinfo.value.get_diagnostic_report()

    def test_profile_of_wrong_shape(self):
        params = ConstantParameters(inductance=lambda x: np.ones(5), capacitance=4e-10)
        with pytest.raises(ParameterEvaluationError):
            params.evaluate(X)

    def test_profile_returning_quantity(self):
        params = ConstantParameters(inductance=lambda x: Quantity(np.full_like(x, 250.0), "nH/m"),
                                    capacitance=4e-10)
        np.testing.assert_allclose(params.evaluate(X).inductance, 250e-9)

    def test_profile_returning_wrong_units(self):
        params = ConstantParameters(inductance=lambda x: Quantity(1.0, "pF/m"), capacitance=4e-10)
        with pytest.raises(ParameterEvaluationError):
            params.evaluate(X)


class TestFunctionalParameters:

    def test_state_functions_are_reevaluated(self):
        params = FunctionalParameters(
            inductance=lambda v, i, x, t: 1e-6 * (1 + i ** 2),
            capacitance=400e-12,
        )
        assert params.is_state_dependent
        at_rest = params.evaluate(X, ZEROS, ZEROS, 0.0)
        driven = params.evaluate(X, ZEROS, np.array([1.0, 2.0]), 0.0)
        np.testing.assert_allclose(at_rest.inductance, 1e-6)
        np.testing.assert_allclose(driven.inductance, [2e-6, 5e-6])

    def test_time_dependence(self):
        params = FunctionalParameters(inductance=1e-6, capacitance=lambda v, i, x, t: 4e-10 * (1 + t))
        np.testing.assert_allclose(params.evaluate(X, ZEROS, ZEROS, 1.0).capacitance, 8e-10)

    def test_non_finite_result_names_the_time(self):
        params = FunctionalParameters(inductance=lambda v, i, x, t: 1e-6 / i, capacitance=4e-10)
        with np.errstate(divide="ignore"):
            with pytest.raises(ParameterEvaluationError) as excinfo:
                params.evaluate(X, ZEROS, ZEROS, 2e-9)
        assert excinfo.value.time == 2e-9
        assert excinfo.value.bad_indices.size == 2


class TestKineticInductance:

    def test_inductance_grows_with_current(self):
        params = kinetic_inductance_parameters("200 nH/m", "50 nH/m", "0.1 A", "100 pF/m")
        rest = params.evaluate(X, ZEROS, ZEROS, 0.0)
        np.testing.assert_allclose(rest.inductance, 250e-9)
        driven = params.evaluate(X, ZEROS, np.array([0.1, -0.2]), 0.0)
        np.testing.assert_allclose(driven.inductance, [300e-9, 450e-9])

    @pytest.mark.parametrize("current", ["0 A", "-1 A", "1 V"])
    def test_bad_critical_current(self, current):
        with pytest.raises(ParameterDefinitionError) as excinfo:
            kinetic_inductance_parameters("200 nH/m", "50 nH/m", current, "100 pF/m")
        assert excinfo.value.parameter == "critical_current"


class TestParameterExpression:

    def test_extract_symbols(self):
        assert extract_symbols("np.exp(-x) * v + Quantity('1 V')") == {"np", "x", "v", "Quantity"}
        assert extract_symbols("  ") == set()

    def test_evaluates_in_si_units(self):
        expr = ParameterExpression("Quantity('1 uH/m') * (1 + (i / Quantity('0.2 A'))**2)", "H/m", name="L")
        assert expr.is_state_dependent
        assert expr.symbols == frozenset({"i"})
        result = expr(ZEROS, np.array([0.0, 0.2]), X, 0.0)
        np.testing.assert_allclose(result, [1e-6, 2e-6])

    def test_plain_result_is_read_in_declared_unit(self):
        expr = ParameterExpression("400 * (1 + x / Quantity('1 m'))", "pF/m", name="C")
        assert not expr.is_state_dependent
        profile = expr.position_function()
        np.testing.assert_allclose(profile(X), [500e-12, 700e-12])

    def test_dimension_mismatch(self):
        with pytest.raises(ParameterDefinitionError) as excinfo:
            ParameterExpression("Quantity('1 pF/m') * (1 + v / Quantity('1 V'))", "H/m", name="L")
        assert "dimension" in excinfo.value.details.lower()

    def test_inconsistent_expression(self):
        with pytest.raises(ParameterDefinitionError):
            ParameterExpression("Quantity('1 uH/m') + i", "H/m", name="L")

    def test_unknown_symbol(self):
        with pytest.raises(ParameterDefinitionError) as excinfo:
            ParameterExpression("Quantity('1 uH/m') * freq", "H/m", name="L")
        assert "freq" in excinfo.value.details

    def test_syntax_error(self):
        with pytest.raises(ParameterDefinitionError) as excinfo:
            ParameterExpression("Quantity('1 uH/m') *", "H/m", name="L")
        assert "syntax" in excinfo.value.details.lower()

    def test_builtins_are_not_available(self):
        with pytest.raises(ParameterDefinitionError):
            ParameterExpression("__import__('os')", "H/m", name="L")

    def test_state_dependent_expression_has_no_position_function(self):
        expr = ParameterExpression("Quantity('1 uH/m') * (1 + t / Quantity('1 s'))", "H/m", name="L")
        with pytest.raises(ParameterDefinitionError):
            expr.position_function()

    def test_expression_as_functional_parameter(self):
        expr = ParameterExpression("Quantity('1 uH/m') * (1 + (i / Quantity('0.2 A'))**2)", "H/m", name="L")
        params = FunctionalParameters(inductance=expr, capacitance="400 pF/m")
        result = params.evaluate(X, ZEROS, np.array([0.2, 0.4]), 0.0)
        np.testing.assert_allclose(result.inductance, [2e-6, 5e-6])

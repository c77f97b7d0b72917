import gc
import logging

import pytest
import numpy as np
from NLpy.core import ShapeError, StatisticsError, Tensor, ValidationError, get_autograd_engine, training_mode
import NLpy.core.mode as modes
from NLpy.nn import (
    BatchNorm,
    BatchNorm1d,
    BatchNorm2d,
    Dropout,
    GroupNorm,
    InstanceNorm,
    InstanceNorm2d,
    LayerNorm,
    has_affine,
    normalise,
    relu,
)


def numerical_grad(f, x, grad_output, h=1e-6):
    """Central differences of sum(f(x) * grad_output) with respect to x."""
    grad = np.zeros_like(x)
    it = np.nditer(x, flags=["multi_index"])
    for _ in it:
        idx = it.multi_index
        plus = x.copy()
        minus = x.copy()
        plus[idx] += h
        minus[idx] -= h
        grad[idx] = (np.sum(f(plus) * grad_output) - np.sum(f(minus) * grad_output)) / (2 * h)
    return grad


def check_input_gradient(layer, shape, seed=0):
    rng = np.random.RandomState(seed)
    data = rng.randn(*shape)
    grad_output = rng.randn(*shape)

    x = Tensor(data, requires_grad=True)
    layer(x).backward(grad_output)

    expected = numerical_grad(lambda d: layer(Tensor(d)).data, data, grad_output)
    assert np.allclose(x.grad, expected, atol=1e-5)


class TestBatchNorm:
    """Tests for BatchNorm layer"""

    def setup_method(self):
        get_autograd_engine().clear()

    def test_basic_normalization(self):
        """Test basic normalization without affine transform"""
        batch_norm = BatchNorm(3, affine=False)
        x = Tensor(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float64))

        with training_mode():
            output = batch_norm(x)

        # Output should be normalized (mean ≈ 0, std ≈ 1)
        assert np.allclose(output.data.mean(axis=0), 0, atol=1e-6)
        assert np.allclose(output.data.std(axis=0), 1, atol=1e-4)

    def test_affine_transform(self):
        """Test normalization with affine transform"""
        batch_norm = BatchNorm(2).train()
        batch_norm.weight.data = np.array([2.0, 3.0])
        batch_norm.bias.data = np.array([1.0, 2.0])

        x = Tensor(np.array([[1, 2], [3, 4]], dtype=np.float64))
        output = batch_norm(x)

        mean = x.data.mean(axis=0)
        var = x.data.var(axis=0)
        normalized = (x.data - mean) / np.sqrt(var + batch_norm.eps)
        expected = normalized * batch_norm.weight.data + batch_norm.bias.data

        assert np.allclose(output.data, expected)

    def test_running_stats_values(self):
        """One update from the default state with momentum 0.1"""
        batch_norm = BatchNorm(2, momentum=0.1).train()
        x = Tensor(np.array([[1, 2], [3, 4]], dtype=np.float64))
        batch_norm(x)

        # Batch mean [2, 3], unbiased variance 2
        assert np.allclose(batch_norm.running_mean.data, [0.2, 0.3])
        assert np.allclose(batch_norm.running_var.data, [1.1, 1.1])

    def test_inference_uses_running_stats(self):
        batch_norm = BatchNorm(2, momentum=0.1)
        x1 = Tensor(np.array([[1, 2], [3, 4]], dtype=np.float64))
        x2 = Tensor(np.array([[2, 3], [4, 7]], dtype=np.float64))

        with training_mode():
            batch_norm(x1)
            initial_mean = batch_norm.running_mean.data.copy()
            batch_norm(x2)
        assert not np.array_equal(batch_norm.running_mean.data, initial_mean)

        frozen_mean = batch_norm.running_mean.data.copy()
        output = batch_norm(x1)
        expected = (x1.data - batch_norm.running_mean.data) / np.sqrt(
            batch_norm.running_var.data + batch_norm.eps
        )
        assert np.allclose(output.data, expected)
        # No updates outside training
        assert np.array_equal(batch_norm.running_mean.data, frozen_mean)

    def test_forced_inference_ignores_training_signal(self):
        batch_norm = modes.testmode(BatchNorm(2))
        x = Tensor(np.array([[1.0, 2.0], [3.0, 4.0]]))

        with training_mode():
            output = batch_norm(x)

        # Default running statistics are zero mean and unit variance
        assert np.allclose(output.data, x.data / np.sqrt(1 + batch_norm.eps))
        assert np.array_equal(batch_norm.running_mean.data, [0.0, 0.0])

    def test_no_running_stats(self):
        batch_norm = BatchNorm(2, track_running_stats=False)
        assert batch_norm.running_mean is None
        assert batch_norm.stats is None

        x = Tensor(np.array([[1.0, 2.0], [3.0, 4.0]]))
        output = batch_norm(x)
        # Batch statistics are used even in inference mode
        assert np.allclose(output.data.mean(axis=0), 0)

    def test_assigned_running_stats_are_used(self):
        batch_norm = BatchNorm(2, affine=False)
        batch_norm.running_mean = Tensor([5.0, 5.0])
        batch_norm.running_var = np.array([4.0, 4.0])

        assert batch_norm.running_mean is batch_norm.stats.mean
        assert batch_norm.running_var is batch_norm.stats.var
        assert np.array_equal(batch_norm.stats.mean.data, [5.0, 5.0])

        output = batch_norm(Tensor(np.full((3, 2), 7.0)))
        assert np.allclose(output.data, 2.0 / np.sqrt(4.0 + batch_norm.eps))

    def test_assigned_running_stats_shape(self):
        batch_norm = BatchNorm(2)
        with pytest.raises(ShapeError):
            batch_norm.running_mean = Tensor([1.0, 2.0, 3.0])
        assert np.array_equal(batch_norm.running_mean.data, [0.0, 0.0])

    def test_float32_input_keeps_dtype(self):
        batch_norm = BatchNorm(3, affine=False)
        x = Tensor(np.random.randn(4, 3).astype(np.float32))

        with training_mode():
            assert batch_norm(x).dtype == np.float32
        assert batch_norm(x).dtype == np.float32
        # Running estimates are still accumulated in float64
        assert batch_norm.running_mean.dtype == np.float64

    def test_inference_does_not_grow_graph(self):
        engine = get_autograd_engine()
        batch_norm = BatchNorm(4)
        x = Tensor(np.random.randn(8, 4))

        batch_norm(x)
        gc.collect()
        nodes = len(engine._nodes)

        for _ in range(100):
            batch_norm(x)
        gc.collect()
        assert len(engine._nodes) == nodes

    def test_running_stats_converge(self):
        """Repeated training on one batch drives the estimates to its statistics"""
        np.random.seed(0)
        data = np.random.randn(16, 3) * [1.0, 2.0, 0.5] + [1.0, -2.0, 3.0]
        batch_norm = BatchNorm(3).train()

        for _ in range(200):
            batch_norm(Tensor(data))

        assert np.allclose(batch_norm.running_mean.data, data.mean(axis=0), atol=1e-6)
        assert np.allclose(batch_norm.running_var.data, data.var(axis=0, ddof=1), atol=1e-6)

    def test_backward(self):
        """Test gradient computation"""
        batch_norm = BatchNorm(3).train()
        x = Tensor(np.random.randn(8, 3), requires_grad=True)

        output = batch_norm(x)
        output.backward(np.ones_like(output.data))

        # Sum of a normalized batch does not depend on the input
        assert np.allclose(batch_norm.weight.grad, 0, atol=1e-6)
        assert np.allclose(batch_norm.bias.grad, 8)
        assert np.allclose(x.grad, 0, atol=1e-6)

    def test_input_gradient(self):
        with training_mode():
            check_input_gradient(BatchNorm(3, track_running_stats=False), (5, 3, 2))

    def test_spatial_input(self):
        """Statistics are per channel over batch and spatial axes"""
        batch_norm = BatchNorm2d(3).train()
        x = Tensor(np.random.randn(4, 3, 5, 5) * 3 + 2)
        output = batch_norm(x)

        assert np.allclose(output.data.mean(axis=(0, 2, 3)), 0, atol=1e-6)
        assert np.allclose(output.data.var(axis=(0, 2, 3)), 1, atol=1e-3)
        assert batch_norm.running_mean.shape == (3,)

    def test_activation(self):
        batch_norm = BatchNorm(3, activation=relu).train()
        output = batch_norm(Tensor(np.random.randn(10, 3)))

        assert np.all(output.data >= 0)
        assert np.any(output.data == 0)

    def test_single_sample_raises(self):
        batch_norm = BatchNorm(3).train()
        with pytest.raises(StatisticsError):
            batch_norm(Tensor(np.random.randn(1, 3)))
        # Still a ValueError for callers that only catch that
        with pytest.raises(ValueError):
            batch_norm(Tensor(np.random.randn(1, 3)))

    def test_zero_eps_constant_input(self):
        batch_norm = BatchNorm(2, eps=0.0).train()
        with pytest.raises(ValueError, match="Division by zero"):
            batch_norm(Tensor(np.ones((4, 2))))

    def test_shape_errors(self):
        batch_norm = BatchNorm(3)
        with pytest.raises(ShapeError):
            batch_norm(Tensor(np.random.randn(4, 2)))
        with pytest.raises(ShapeError):
            batch_norm(Tensor(np.random.randn(3)))
        with pytest.raises(ShapeError):
            BatchNorm2d(3)(Tensor(np.random.randn(4, 3)))

    def test_invalid_construction(self):
        with pytest.raises(ValidationError):
            BatchNorm(0)
        with pytest.raises(ValidationError):
            BatchNorm(2.5)

    def test_parameters_and_buffers(self):
        batch_norm = BatchNorm1d(4)
        assert [name for name, _ in batch_norm.named_parameters()] == ["weight", "bias"]
        buffers = list(batch_norm.buffers())
        assert buffers[0] is batch_norm.running_mean
        assert buffers[1] is batch_norm.running_var

    def test_repr(self):
        assert repr(BatchNorm(3)) == (
            "BatchNorm(3, eps=1e-05, momentum=0.1, affine=True, track_running_stats=True)"
        )


class TestLayerNorm:
    """Tests for LayerNorm layer"""

    def setup_method(self):
        get_autograd_engine().clear()

    def test_normalization(self):
        """Each sample is normalized over its features"""
        layer_norm = LayerNorm(2, affine=False, eps=0.0)
        x = Tensor(np.array([[1, 5], [2, 6], [3, 7], [4, 8]], dtype=np.float64))
        output = layer_norm(x)

        expected = np.array([[-1.0, 1.0]] * 4)
        assert np.allclose(output.data, expected)

    def test_same_in_train_and_inference(self):
        layer_norm = LayerNorm(5)
        x = Tensor(np.random.randn(3, 5))

        inference = layer_norm(x).data
        with training_mode():
            training = layer_norm(x).data
        assert np.allclose(inference, training)

    def test_multiple_trailing_axes(self):
        layer_norm = LayerNorm((3, 4))
        x = Tensor(np.random.randn(2, 5, 3, 4) * 4 + 1)
        output = layer_norm(x)

        assert layer_norm.weight.shape == (3, 4)
        assert np.allclose(output.data.mean(axis=(2, 3)), 0, atol=1e-6)
        assert np.allclose(output.data.var(axis=(2, 3)), 1, atol=1e-3)

    def test_affine_parameters(self):
        layer_norm = LayerNorm(3)
        layer_norm.weight.data = np.array([1.0, 2.0, 3.0])
        layer_norm.bias.data = np.array([0.0, 1.0, -1.0])
        x = Tensor(np.random.randn(4, 3))

        output = layer_norm(x)
        normalized = (x.data - x.data.mean(axis=-1, keepdims=True)) / np.sqrt(
            x.data.var(axis=-1, keepdims=True) + layer_norm.eps
        )
        assert np.allclose(output.data, normalized * layer_norm.weight.data + layer_norm.bias.data)

    def test_parameter_gradients(self):
        layer_norm = LayerNorm(3)
        x = Tensor(np.random.randn(6, 3), requires_grad=True)
        output = layer_norm(x)
        output.backward(np.ones((6, 3)))

        assert np.allclose(layer_norm.bias.grad, 6)
        assert np.allclose(layer_norm.weight.grad, output.data.sum(axis=0))

    def test_input_gradient(self):
        check_input_gradient(LayerNorm(4), (3, 4))

    def test_shape_errors(self):
        with pytest.raises(ShapeError):
            LayerNorm(4)(Tensor(np.random.randn(4, 3)))
        with pytest.raises(ShapeError):
            LayerNorm((2, 3))(Tensor(np.random.randn(3)))

    def test_invalid_construction(self):
        with pytest.raises(ValidationError):
            LayerNorm(())
        with pytest.raises(ValidationError):
            LayerNorm((3, 0))

    def test_repr(self):
        assert repr(LayerNorm(4)) == "LayerNorm((4,), eps=1e-05, affine=True)"


class TestInstanceNorm:
    """Tests for InstanceNorm layer"""

    def setup_method(self):
        get_autograd_engine().clear()

    def test_per_instance_normalization(self):
        instance_norm = InstanceNorm(3)
        x = Tensor(np.random.randn(2, 3, 6) * 5 - 1)
        output = instance_norm(x)

        assert np.allclose(output.data.mean(axis=2), 0, atol=1e-6)
        assert np.allclose(output.data.var(axis=2), 1, atol=1e-3)

    def test_defaults(self):
        instance_norm = InstanceNorm(3)
        assert not instance_norm.affine
        assert instance_norm.weight is None
        assert instance_norm.stats is None
        assert list(instance_norm.parameters()) == []

    def test_running_stats_count_spatial_elements(self):
        instance_norm = InstanceNorm2d(2, track_running_stats=True, momentum=0.1)
        data = np.random.randn(3, 2, 4, 5)

        with training_mode():
            instance_norm(Tensor(data))

        n = 4 * 5
        batch_var = data.var(axis=(2, 3)).mean(axis=0)
        assert np.allclose(instance_norm.running_mean.data, 0.1 * data.mean(axis=(2, 3)).mean(axis=0))
        assert np.allclose(instance_norm.running_var.data, 0.9 + 0.1 * n / (n - 1) * batch_var)

    def test_inference_with_running_stats(self):
        instance_norm = InstanceNorm(2, track_running_stats=True)
        x = Tensor(np.random.randn(2, 2, 3))

        output = instance_norm(x)
        assert np.allclose(output.data, x.data / np.sqrt(1 + instance_norm.eps))

    def test_input_gradient(self):
        check_input_gradient(InstanceNorm(2, affine=True), (2, 2, 4))

    def test_requires_spatial_axis(self):
        with pytest.raises(ShapeError):
            InstanceNorm(3)(Tensor(np.random.randn(4, 3)))
        with pytest.raises(ShapeError):
            InstanceNorm2d(3)(Tensor(np.random.randn(4, 3, 5)))


class TestGroupNorm:
    """Tests for GroupNorm layer"""

    def setup_method(self):
        get_autograd_engine().clear()

    def test_constant_input(self):
        group_norm = GroupNorm(2, 4, momentum=0.1)
        x = Tensor(np.ones((2, 4, 3, 3)))

        with training_mode():
            output = group_norm(x)

        assert np.allclose(output.data, 0)
        assert group_norm.running_mean.shape == (2,)
        assert np.allclose(group_norm.running_mean.data, 0.1)
        assert np.allclose(group_norm.running_var.data, 0.9)

    def test_group_statistics(self):
        group_norm = GroupNorm(2, 4, affine=False, track_running_stats=False)
        x = Tensor(np.random.randn(3, 4, 5) * 2 + 1)
        output = group_norm(x)

        grouped = output.data.reshape(3, 2, 2, 5)
        assert np.allclose(grouped.mean(axis=(2, 3)), 0, atol=1e-6)
        assert np.allclose(grouped.var(axis=(2, 3)), 1, atol=1e-3)

    def test_single_group_matches_normalise(self):
        x = Tensor(np.random.randn(2, 4, 3, 3))
        with training_mode():
            output = GroupNorm(1, 4)(x)

        assert np.allclose(output.data, normalise(x, axis=(1, 2, 3)).data)

    def test_one_channel_per_group_matches_instance_norm(self):
        x = Tensor(np.random.randn(2, 4, 3, 3))
        with training_mode():
            output = GroupNorm(4, 4, affine=False)(x)

        assert np.allclose(output.data, InstanceNorm(4)(x).data)

    def test_affine_is_per_channel(self):
        group_norm = GroupNorm(2, 4)
        assert group_norm.weight.shape == (4,)
        assert group_norm.bias.shape == (4,)

        group_norm.weight.data = np.array([1.0, 2.0, 1.0, 2.0])
        group_norm.bias.data = np.array([1.0, 2.0, 3.0, 4.0])
        x = Tensor(np.random.randn(2, 4, 6))
        with training_mode():
            output = group_norm(x)
            plain = GroupNorm(2, 4, affine=False)(x)

        expected = plain.data * group_norm.weight.data.reshape(1, 4, 1) + group_norm.bias.data.reshape(1, 4, 1)
        assert np.allclose(output.data, expected)

    def test_input_gradient(self):
        with training_mode():
            check_input_gradient(GroupNorm(2, 4, track_running_stats=False), (2, 4, 3))

    def test_invalid_construction(self):
        with pytest.raises(ValidationError):
            GroupNorm(3, 4)
        with pytest.raises(ValidationError):
            GroupNorm(0, 4)

    def test_shape_errors(self):
        group_norm = GroupNorm(2, 4)
        with pytest.raises(ShapeError):
            group_norm(Tensor(np.random.randn(2, 4)))
        with pytest.raises(ShapeError):
            group_norm(Tensor(np.random.randn(2, 6, 3)))

    def test_repr(self):
        assert repr(GroupNorm(2, 4)) == (
            "GroupNorm(num_groups=2, num_channels=4, eps=1e-05, affine=True, "
            "track_running_stats=True)"
        )


class TestNormalise:
    """Tests for the stateless normalise function"""

    def setup_method(self):
        get_autograd_engine().clear()

    def test_moments(self):
        eps = 1e-2
        data = np.random.randn(4, 10) * 0.3
        output = normalise(Tensor(data), axis=1, eps=eps).data

        var = data.var(axis=1)
        assert np.allclose(output.mean(axis=1), 0, atol=1e-8)
        assert np.allclose(output.var(axis=1), var / (var + eps))

    def test_default_axis_is_last(self):
        data = np.random.randn(3, 4)
        assert np.allclose(normalise(Tensor(data)).data, normalise(Tensor(data), axis=1).data)

    def test_float32_input_keeps_dtype(self):
        data = np.random.randn(3, 4).astype(np.float32)
        assert normalise(Tensor(data), eps=1e-3).dtype == np.float32

    def test_input_gradient(self):
        rng = np.random.RandomState(1)
        data = rng.randn(3, 5)
        grad_output = rng.randn(3, 5)

        x = Tensor(data, requires_grad=True)
        normalise(x, axis=(0, 1)).backward(grad_output)

        expected = numerical_grad(lambda d: normalise(Tensor(d), axis=(0, 1)).data, data, grad_output)
        assert np.allclose(x.grad, expected, atol=1e-5)


class TestHasAffine:
    """Which layers carry a learnable scale and shift"""

    def test_layers(self):
        assert has_affine(BatchNorm(3))
        assert not has_affine(BatchNorm(3, affine=False))
        assert has_affine(LayerNorm(3))
        assert not has_affine(InstanceNorm(3))
        assert has_affine(InstanceNorm(3, affine=True))
        assert has_affine(GroupNorm(1, 3))
        assert not has_affine(Dropout(0.5))

    def test_arbitrary_objects(self):
        assert not has_affine(object())
        assert not has_affine(relu)


class TestLogging:
    """Running-statistic updates are reported at debug level"""

    def test_update_is_logged(self, caplog):
        batch_norm = BatchNorm(2).train()
        with caplog.at_level(logging.DEBUG, logger="NLpy"):
            batch_norm(Tensor(np.random.randn(4, 2)))

        assert "Updated running statistics" in caplog.text

"""
Tests for networks: the weight codec, the builder and the predictor.
"""
import numpy as np
import pytest
import torch

from lotoevo.exceptions import DecodeError, TrainingError, ValidationError
from lotoevo.networks.architectures import draw_predictor_architecture
from lotoevo.networks.builder import NetworkBuilder
from lotoevo.networks.codec import decode_weights, encode_weights, spec_nbytes, weight_spec
from lotoevo.networks.predictor import Predictor


class TestCodec:
    """Tests for encode_weights/decode_weights."""

    def test_round_trip(self):
        arrays = {
            'kernel': np.arange(6, dtype=np.float32).reshape(2, 3),
            'step': np.array(4.0, dtype=np.float32),
            'counts': np.array([1, 2, 3]),
        }
        data, specs = encode_weights(arrays)

        assert [s['name'] for s in specs] == ['kernel', 'step', 'counts']
        assert specs[1]['shape'] == []
        assert specs[2]['dtype'] == 'int32'
        assert len(data) == 6 * 4 + 4 + 3 * 4

        decoded = decode_weights(data, specs)
        assert list(decoded) == ['kernel', 'step', 'counts']
        np.testing.assert_array_equal(decoded['kernel'], arrays['kernel'])
        assert decoded['step'].shape == ()
        np.testing.assert_array_equal(decoded['counts'], [1, 2, 3])

    def test_size_mismatch(self):
        data, specs = encode_weights({'w': np.zeros((2, 2), dtype=np.float32)})
        with pytest.raises(DecodeError):
            decode_weights(data[:-4], specs)
        with pytest.raises(DecodeError):
            decode_weights(data + b'\x00' * 4, specs)

    def test_malformed_spec(self):
        with pytest.raises(DecodeError):
            decode_weights(b'', [{'name': 'w', 'shape': [1], 'dtype': 'float64'}])
        with pytest.raises(DecodeError):
            decode_weights(b'', [{'name': 'w'}])

    def test_weight_spec(self):
        spec = weight_spec('w', (3, 4))
        assert spec == {'name': 'w', 'shape': [3, 4], 'dtype': 'float32'}
        assert spec_nbytes(spec) == 48
        with pytest.raises(ValueError):
            weight_spec('w', (1,), dtype='complex64')


class TestNetworkBuilder:
    """Tests for NetworkBuilder."""

    @pytest.fixture
    def builder(self):
        return NetworkBuilder()

    def test_minimal_architecture(self, builder, small_architecture):
        network = builder.from_json(small_architecture)
        output = network(torch.zeros(2, 25))
        assert output.shape == (2, 25)
        assert builder.get_parameter_count(network) == 25 * 8 + 8 + 8 * 25 + 25

    def test_default_predictor_layers(self, builder):
        network = builder.from_json(draw_predictor_architecture())
        assert network.layer_ids() == [
            'linear_0', 'act_0',
            'linear_1', 'act_1', 'dropout_1',
            'linear_2', 'act_2',
            'output', 'output_act',
        ]

    def test_unknown_layer_type(self, builder):
        with pytest.raises(ValueError):
            builder.from_json({'layers': [{'type': 'conv9d'}]})

    def test_missing_layers(self, builder):
        with pytest.raises(ValueError):
            builder.from_json({'input_size': 25})

    def test_weights_round_trip(self, builder, small_architecture):
        source = builder.from_json(small_architecture)
        target = builder.from_json(small_architecture)

        data, specs = builder.serialize_weights(source)
        builder.deserialize_weights(data, specs, target)

        for a, b in zip(source.parameters(), target.parameters()):
            assert torch.equal(a, b)


class TestPredictor:
    """Tests for Predictor."""

    @pytest.fixture
    def predictor(self, small_architecture):
        torch.manual_seed(0)
        return Predictor.build(small_architecture, learning_rate=0.01)

    @pytest.fixture
    def samples(self):
        inputs = [[1.0 if i < 15 else 0.0 for i in range(25)]] * 4
        targets = [[0.0 if i < 15 else 1.0 for i in range(25)]] * 4
        return inputs, targets

    def test_predict_scores(self, predictor):
        scores = predictor.predict([0.0] * 25)
        assert len(scores) == 25
        assert all(0.0 < s < 1.0 for s in scores)

    def test_fit_history(self, predictor, samples):
        history = predictor.fit(*samples, epochs=3, batch_size=2)

        assert [h['epoch'] for h in history] == [1, 2, 3]
        assert all(h['loss'] > 0 for h in history)
        assert all(0.0 <= h['accuracy'] <= 1.0 for h in history)
        assert predictor.epochs_trained == 3

    def test_fit_lowers_loss(self, predictor, samples):
        history = predictor.fit(*samples, epochs=30)
        assert history[-1]['loss'] < history[0]['loss']

    def test_fit_row_mismatch(self, predictor, samples):
        inputs, targets = samples
        with pytest.raises(ValidationError):
            predictor.fit(inputs, targets[:2])

    def test_single_row(self, predictor):
        history = predictor.fit([0.0] * 25, [1.0] * 25)
        assert len(history) == 1

    def test_save_load(self, predictor, samples, tmp_path):
        predictor.fit(*samples, epochs=2)
        predictor.save(tmp_path / 'model')

        loaded = Predictor.load(tmp_path / 'model')

        assert loaded.architecture == predictor.architecture
        assert loaded.epochs_trained == 2
        assert loaded.learning_rate == pytest.approx(0.01)
        for name, array in predictor.get_weights().items():
            np.testing.assert_allclose(loaded.get_weights()[name], array)
        assert loaded.optimizer_state_restored is False

    def test_load_unknown_format(self, predictor, tmp_path):
        manifest = predictor.save(tmp_path / 'model')
        manifest.write_text('{"format": "something-else"}')
        with pytest.raises(DecodeError):
            Predictor.load(tmp_path / 'model')

    def test_no_optimizer_state_before_training(self, predictor):
        assert predictor.get_optimizer_weights() is None

    def test_optimizer_weights_follow_specs(self, predictor, samples):
        predictor.fit(*samples)

        weights = predictor.get_optimizer_weights()
        specs = predictor.optimizer_weight_specs()

        assert [name for name, _ in weights] == [s['name'] for s in specs]
        assert len(specs) == 3 * len(list(predictor.network.parameters()))

    def test_optimizer_state_transfer(self, predictor, samples, small_architecture):
        predictor.fit(*samples)
        other = Predictor.build(small_architecture)

        other.set_optimizer_weights(dict(predictor.get_optimizer_weights()))

        assert other.optimizer_state_restored is True
        restored = dict(other.get_optimizer_weights())
        for name, array in predictor.get_optimizer_weights():
            np.testing.assert_allclose(restored[name], array)

    def test_optimizer_state_missing_entry(self, predictor, samples):
        predictor.fit(*samples)
        weights = dict(predictor.get_optimizer_weights())
        del weights['0/exp_avg']
        with pytest.raises(DecodeError):
            predictor.set_optimizer_weights(weights)

    def test_optimizer_state_wrong_shape(self, predictor, samples):
        predictor.fit(*samples)
        weights = dict(predictor.get_optimizer_weights())
        weights['0/exp_avg'] = np.zeros((3, 3), dtype=np.float32)
        with pytest.raises(DecodeError):
            predictor.set_optimizer_weights(weights)

    def test_reset_optimizer(self, predictor, samples):
        predictor.fit(*samples)
        predictor.reset_optimizer()
        assert predictor.get_optimizer_weights() is None

    def test_rollback_restores_parameters_and_optimizer(self, predictor, samples):
        predictor.fit(*samples)
        state = predictor.snapshot()
        weights = predictor.get_weights()
        optimizer_weights = predictor.get_optimizer_weights()

        predictor.fit(*samples, epochs=3)
        predictor.rollback(state)

        assert predictor.epochs_trained == 1
        for name, array in predictor.get_weights().items():
            np.testing.assert_array_equal(array, weights[name])
        for (name, array), (expected_name, expected) in zip(
            predictor.get_optimizer_weights(), optimizer_weights
        ):
            assert name == expected_name
            np.testing.assert_array_equal(array, expected)

    def test_dispose(self, predictor):
        predictor.dispose()
        with pytest.raises(TrainingError):
            predictor.predict([0.0] * 25)

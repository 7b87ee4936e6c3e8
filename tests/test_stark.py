"""
End-to-end tests for proof generation and verification.

Covers completeness, tamper sensitivity, binding to the public statement,
wire-format round trips, decoding errors and configuration errors.
"""

import dataclasses

import pytest
import structlog
from hypothesis import given, settings, strategies as st

from sigstark import (
    PARAMS_GOLDILOCKS,
    PARAMS_STANDARD,
    PARAMS_TEST,
    PrivateWitness,
    STARKProof,
    STARKProver,
    STARKVerifier,
    SignatureBindingAIR,
    StarkParams,
    check_compatibility,
    generate_proof,
    verify_proof,
)
from sigstark.errors import (
    ConfigurationError,
    DecodingError,
    MalformedInput,
    UnsoundWitness,
)
from sigstark.field import FieldElement, STARK_PRIME
from sigstark.fri import expected_layer_count
from sigstark.observability import _censor_secrets
from sigstark.stark import GenerationStage, VerificationStage

from conftest import SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS


def replace_query(proof, trail_index, layer_index, **changes):
    trails = list(proof.fri_queries)
    trail = list(trails[trail_index])
    trail[layer_index] = dataclasses.replace(trail[layer_index], **changes)
    trails[trail_index] = tuple(trail)
    return dataclasses.replace(proof, fri_queries=tuple(trails))


class TestScenario:
    """message_hash=123, public_key=456, signature=789, witness=[10, 20]"""

    def test_layer_count(self, scenario_proof):
        extended_length = 8 * PARAMS_TEST.blowup_factor
        assert scenario_proof.layer_count == min(
            PARAMS_TEST.fri_round_budget + 1,
            extended_length.bit_length() - 1 - 1,
        )
        assert scenario_proof.layer_count == 4
        assert len(scenario_proof.final_polynomial) == 2
        assert scenario_proof.num_queries == 8

    def test_verifies(self, scenario_proof):
        assert verify_proof(SCENARIO_PUBLIC_INPUT, scenario_proof, PARAMS_TEST)

    def test_incremented_commitment_rejected(self, scenario_proof):
        tampered = dataclasses.replace(
            scenario_proof,
            trace_commitment=scenario_proof.trace_commitment + 1,
        )
        assert not verify_proof(SCENARIO_PUBLIC_INPUT, tampered, PARAMS_TEST)

    def test_deterministic(self, scenario_proof):
        assert generate_proof(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS, PARAMS_TEST) == scenario_proof

    def test_proof_has_no_challenges(self, scenario_proof):
        fields = {f.name for f in dataclasses.fields(STARKProof)}
        assert not any('challenge' in name for name in fields)


class TestCompleteness:
    """Valid witnesses always verify."""

    @settings(max_examples=5, deadline=None)
    @given(
        st.integers(min_value=0, max_value=STARK_PRIME - 1),
        st.integers(min_value=0, max_value=STARK_PRIME - 1),
        st.integers(min_value=0, max_value=STARK_PRIME - 1),
        st.lists(st.integers(min_value=1, max_value=STARK_PRIME - 1), min_size=1, max_size=7),
    )
    def test_random_statements(self, m, pk, s, witness):
        public_input = {'message_hash': m, 'public_key': pk, 'signature': s}
        proof = generate_proof(public_input, witness, PARAMS_TEST)
        assert verify_proof(public_input, proof, PARAMS_TEST)

    @pytest.mark.parametrize('params', [PARAMS_STANDARD, PARAMS_GOLDILOCKS, StarkParams(hash_name='blake3')])
    def test_presets(self, params):
        proof = generate_proof(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS, params)
        assert proof.layer_count == expected_layer_count(8 * params.blowup_factor, params.fri_round_budget)
        assert verify_proof(SCENARIO_PUBLIC_INPUT, proof, params)

    def test_sequential_verifier(self, scenario_proof):
        """The worker count is an execution setting, not part of the statement."""
        params = dataclasses.replace(PARAMS_TEST, max_workers=1)
        assert params.digest() == PARAMS_TEST.digest()
        assert STARKVerifier(params).verify(SCENARIO_PUBLIC_INPUT, scenario_proof)


class TestTamperSensitivity:
    """Any single modification is rejected with a reason."""

    def _reason(self, proof):
        accepted, reason = STARKVerifier(PARAMS_TEST).verify_with_reason(SCENARIO_PUBLIC_INPUT, proof)
        assert not accepted
        return reason

    def test_commitment(self, scenario_proof):
        tampered = dataclasses.replace(scenario_proof, trace_commitment=scenario_proof.trace_commitment ^ 1)
        assert self._reason(tampered) == 'seed_mismatch'

    @pytest.mark.parametrize('layer', [0, 1, 2, 3])
    def test_layer_root(self, scenario_proof, layer):
        roots = list(scenario_proof.fri_layer_roots)
        roots[layer] ^= 1
        tampered = dataclasses.replace(scenario_proof, fri_layer_roots=tuple(roots))
        assert self._reason(tampered)

    @pytest.mark.parametrize('layer', [0, 1, 2, 3])
    def test_query_value(self, scenario_proof, layer):
        query = scenario_proof.fri_queries[3][layer]
        tampered = replace_query(scenario_proof, 3, layer, value=query.value + 1)
        assert self._reason(tampered)

    def test_sibling_value(self, scenario_proof):
        query = scenario_proof.fri_queries[0][2]
        tampered = replace_query(scenario_proof, 0, 2, sibling_value=query.sibling_value + 1)
        assert self._reason(tampered)

    def test_final_polynomial(self, scenario_proof):
        final = list(scenario_proof.final_polynomial)
        final[0] = final[0] + 1
        tampered = dataclasses.replace(scenario_proof, final_polynomial=tuple(final))
        assert self._reason(tampered)

    def test_low_degree_proof(self, scenario_proof):
        values = list(scenario_proof.low_degree_proof)
        values[5] = values[5] + 1
        tampered = dataclasses.replace(scenario_proof, low_degree_proof=tuple(values))
        assert self._reason(tampered) == 'fri_initial_value'

    def test_seed(self, scenario_proof):
        tampered = dataclasses.replace(scenario_proof, public_coin_seed=scenario_proof.public_coin_seed ^ 1)
        assert self._reason(tampered) == 'seed_mismatch'

    def test_trace_opening(self, scenario_proof):
        openings = list(scenario_proof.trace_evaluations)
        opening = openings[1]
        merkle = opening.proofs[0]
        leaf = (merkle.leaf[0] + 1,) + merkle.leaf[1:]
        openings[1] = dataclasses.replace(
            opening,
            proofs=(dataclasses.replace(merkle, leaf=leaf),) + opening.proofs[1:],
        )
        tampered = dataclasses.replace(scenario_proof, trace_evaluations=tuple(openings))
        assert self._reason(tampered) == 'trace_merkle_authentication'

    def test_dropped_query(self, scenario_proof):
        tampered = dataclasses.replace(scenario_proof, fri_queries=scenario_proof.fri_queries[:-1])
        assert self._reason(tampered) == 'query_count'

    def test_dropped_layer(self, scenario_proof):
        tampered = dataclasses.replace(scenario_proof, fri_layer_roots=scenario_proof.fri_layer_roots[:-1])
        assert self._reason(tampered) == 'fri_layer_count'

    def test_digest_out_of_range(self, scenario_proof):
        tampered = dataclasses.replace(scenario_proof, trace_commitment=1 << 256)
        assert self._reason(tampered) == 'digest_out_of_range'

    def test_not_a_proof(self):
        accepted, reason = STARKVerifier(PARAMS_TEST).verify_with_reason(SCENARIO_PUBLIC_INPUT, b'proof')
        assert not accepted
        assert reason == 'malformed_proof'


class TestBinding:
    """A proof is bound to its public statement."""

    @pytest.mark.parametrize('key', ['message_hash', 'public_key', 'signature'])
    def test_changed_field_rejected(self, scenario_proof, key):
        changed = dict(SCENARIO_PUBLIC_INPUT)
        changed[key] += 1
        assert not verify_proof(changed, scenario_proof, PARAMS_TEST)

    @pytest.mark.parametrize('key', ['message_hash', 'public_key', 'signature'])
    @pytest.mark.parametrize('shift', [STARK_PRIME, -STARK_PRIME])
    def test_congruent_scalar_rejected(self, scenario_proof, key, shift):
        """h and h ± p are different statements, never reduced into one."""
        changed = dict(SCENARIO_PUBLIC_INPUT)
        changed[key] += shift
        with pytest.raises(MalformedInput):
            verify_proof(changed, scenario_proof, PARAMS_TEST)
        with pytest.raises(MalformedInput):
            generate_proof(changed, SCENARIO_WITNESS, PARAMS_TEST)

    def test_negative_scalar_rejected(self, scenario_proof):
        changed = dict(SCENARIO_PUBLIC_INPUT, signature=-1)
        with pytest.raises(MalformedInput):
            STARKVerifier(PARAMS_TEST).verify_with_reason(changed, scenario_proof)

    def test_scalar_range_follows_field(self):
        statement = dict(SCENARIO_PUBLIC_INPUT, message_hash=PARAMS_GOLDILOCKS.field_prime)
        with pytest.raises(MalformedInput):
            generate_proof(statement, SCENARIO_WITNESS, PARAMS_GOLDILOCKS)
        proof = generate_proof(statement, SCENARIO_WITNESS, PARAMS_TEST)
        assert verify_proof(statement, proof, PARAMS_TEST)

    def test_largest_scalar_accepted(self):
        statement = dict(SCENARIO_PUBLIC_INPUT, signature=STARK_PRIME - 1)
        proof = generate_proof(statement, SCENARIO_WITNESS, PARAMS_TEST)
        assert verify_proof(statement, proof, PARAMS_TEST)

    def test_public_input_object(self, scenario_proof, public_input):
        assert verify_proof(public_input, scenario_proof, PARAMS_TEST)

    def test_bound_to_parameters(self, scenario_proof):
        params = StarkParams(domain_offset=5)
        assert not verify_proof(SCENARIO_PUBLIC_INPUT, scenario_proof, params)


class TestSoundnessOfGeneration:
    """The prover refuses invalid witnesses."""

    def test_zero_witness(self):
        with pytest.raises(UnsoundWitness) as exc:
            generate_proof(SCENARIO_PUBLIC_INPUT, [10, 0], PARAMS_TEST)
        assert ('witness_nonzero', 1) in exc.value.violations

    def test_zero_modulo_prime(self):
        with pytest.raises(UnsoundWitness):
            generate_proof(SCENARIO_PUBLIC_INPUT, [STARK_PRIME], PARAMS_TEST)

    def test_forged_trace(self, public_input):
        prover = STARKProver(PARAMS_TEST)
        witness = PrivateWitness((10, 20))
        trace = prover.air.build_trace(public_input, witness)
        forged = SignatureBindingAIR().build_trace(
            dataclasses.replace(public_input, signature=790), witness
        )
        assert forged != trace
        with pytest.raises(UnsoundWitness):
            prover.prove_trace(public_input, forged)

    @pytest.mark.parametrize('witness', [[], list(range(1, 9)), ['10'], 'abc', 10])
    def test_malformed_witness(self, witness):
        with pytest.raises(MalformedInput):
            generate_proof(SCENARIO_PUBLIC_INPUT, witness, PARAMS_TEST)

    def test_malformed_public_input(self):
        with pytest.raises(MalformedInput):
            generate_proof({'message_hash': 123}, SCENARIO_WITNESS, PARAMS_TEST)
        with pytest.raises(MalformedInput):
            generate_proof([123, 456, 789], SCENARIO_WITNESS, PARAMS_TEST)


class TestWireFormat:
    """Lossless serialization and strict decoding."""

    def test_roundtrip(self, scenario_proof):
        data = scenario_proof.serialize()
        decoded = STARKProof.deserialize(data)
        assert decoded == scenario_proof
        assert decoded.serialize() == data
        assert verify_proof(SCENARIO_PUBLIC_INPUT, decoded, PARAMS_TEST)

    def test_roundtrip_goldilocks(self):
        proof = generate_proof(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS, PARAMS_GOLDILOCKS)
        decoded = STARKProof.deserialize(proof.serialize(), PARAMS_GOLDILOCKS.field)
        assert decoded == proof
        assert verify_proof(SCENARIO_PUBLIC_INPUT, decoded, PARAMS_GOLDILOCKS)

    def test_wrong_field_width(self, scenario_proof):
        with pytest.raises(DecodingError):
            STARKProof.deserialize(scenario_proof.serialize(), PARAMS_GOLDILOCKS.field)

    @pytest.mark.parametrize('cut', [1, 10, 100])
    def test_truncated(self, scenario_proof, cut):
        data = scenario_proof.serialize()
        with pytest.raises(DecodingError):
            STARKProof.deserialize(data[:-cut])

    def test_trailing_bytes(self, scenario_proof):
        with pytest.raises(DecodingError):
            STARKProof.deserialize(scenario_proof.serialize() + b'\x00')

    def test_bad_header(self, scenario_proof):
        data = bytearray(scenario_proof.serialize())
        data[0] ^= 0xFF
        with pytest.raises(DecodingError):
            STARKProof.deserialize(bytes(data))

    def test_bad_version(self, scenario_proof):
        data = bytearray(scenario_proof.serialize())
        data[2:4] = (99).to_bytes(2, 'big')
        with pytest.raises(DecodingError):
            STARKProof.deserialize(bytes(data))

    def test_unreduced_element(self, scenario_proof):
        data = bytearray(scenario_proof.serialize())
        # header(6) + two digests(64) + root count(4) + roots + coefficient count(4)
        offset = 6 + 64 + 4 + 32 * scenario_proof.layer_count + 4
        data[offset:offset + 32] = STARK_PRIME.to_bytes(32, 'big')
        with pytest.raises(DecodingError):
            STARKProof.deserialize(bytes(data))

    def test_empty(self):
        with pytest.raises(DecodingError):
            STARKProof.deserialize(b'')

    def test_size(self, scenario_proof):
        assert scenario_proof.size == len(scenario_proof.serialize())


class TestConfiguration:
    """Malformed configuration fails before any proof work."""

    @pytest.mark.parametrize('changes', [
        {'blowup_factor': 3},
        {'blowup_factor': 1},
        {'fri_round_budget': 0},
        {'num_queries': 0},
        {'hash_name': 'md5'},
        {'field_prime': 15},
        {'field_generator': 4},
        {'domain_offset': 0},
        {'max_workers': 0},
    ])
    def test_invalid_params(self, changes):
        with pytest.raises(ConfigurationError):
            StarkParams(**changes)

    def test_final_layer_exceeds_degree_bound(self):
        params = StarkParams(blowup_factor=2, fri_round_budget=1)
        with pytest.raises(ConfigurationError):
            check_compatibility(params, SignatureBindingAIR())
        with pytest.raises(ConfigurationError):
            STARKProver(params)

    def test_offset_inside_subgroup(self):
        omega = FieldElement.root_of_unity(32)
        with pytest.raises(ConfigurationError):
            STARKVerifier(StarkParams(domain_offset=omega.to_int()))

    def test_air_field_mismatch(self):
        with pytest.raises(ConfigurationError):
            STARKProver(PARAMS_GOLDILOCKS, air=SignatureBindingAIR())

    def test_params_digest(self):
        assert PARAMS_TEST.digest() == StarkParams().digest()
        assert PARAMS_TEST.digest() != PARAMS_STANDARD.digest()

    def test_security_estimate(self):
        assert PARAMS_TEST.conjectured_security_bits() == 16.0


class TestObservability:
    """Stage hooks and log events."""

    def test_generation_stages(self):
        seen = []
        prover = STARKProver(PARAMS_TEST, hooks=[lambda stage, fields: seen.append(stage)])
        prover.prove(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS)
        assert seen == [stage.value for stage in GenerationStage]

    def test_verification_stages(self, scenario_proof):
        seen = []
        verifier = STARKVerifier(PARAMS_TEST, hooks=[lambda stage, fields: seen.append(stage)])
        assert verifier.verify(SCENARIO_PUBLIC_INPUT, scenario_proof)
        assert seen == [
            stage.value for stage in VerificationStage if stage is not VerificationStage.REJECT
        ]

    def test_rejection_stops_early(self, scenario_proof):
        seen = []
        verifier = STARKVerifier(PARAMS_TEST, hooks=[lambda stage, fields: seen.append(stage)])
        tampered = dataclasses.replace(scenario_proof, public_coin_seed=0)
        assert not verifier.verify(SCENARIO_PUBLIC_INPUT, tampered)
        assert seen == ['init', 'reject']

    def test_log_events(self, scenario_proof):
        with structlog.testing.capture_logs() as logs:
            STARKProver(PARAMS_TEST).prove(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS)
            STARKVerifier(PARAMS_TEST).verify(SCENARIO_PUBLIC_INPUT, scenario_proof)
        events = [entry['event'] for entry in logs]
        assert 'proof_generated' in events
        assert 'proof_verified' in events
        assert 'stage_transition' in events
        generated = next(entry for entry in logs if entry['event'] == 'proof_generated')
        assert generated['proof_hash'].startswith('0x')

    def test_witness_never_logged(self):
        event = _censor_secrets(None, 'info', {'event': 'x', 'private_witness': [10, 20]})
        assert event['private_witness'] == '***REDACTED***'

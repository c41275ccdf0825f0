from typing import Any

from fhir.bundle import Bundle

from mpi_mediator.patient_extractor import entry_key, extract, iter_references


class TestExtract:
    def test_bundle_without_entries_has_no_patient(self) -> None:
        actual = extract({"resourceType": "Bundle", "type": "document"})

        assert not actual.found
        assert actual.entry is None
        assert actual.reference_id is None

    def test_bundle_without_patient_has_no_patient(
        self, bundle_without_patient: Bundle
    ) -> None:
        actual = extract(bundle_without_patient)

        assert not actual.found

    def test_embedded_patient_is_returned(self, bundle_with_patient: Bundle) -> None:
        actual = extract(bundle_with_patient)

        assert actual.found
        assert actual.reference_id is None
        assert actual.entry is bundle_with_patient["entry"][1]
        assert actual.resource is not None
        assert actual.resource["id"] == "12333"

    def test_patient_reference_id_is_returned(
        self, bundle_with_patient_reference: Bundle
    ) -> None:
        actual = extract(bundle_with_patient_reference)

        assert actual.found
        assert actual.entry is None
        assert actual.resource is None
        assert actual.reference_id == "9"

    def test_first_embedded_patient_wins(self) -> None:
        bundle: Bundle = {
            "resourceType": "Bundle",
            "entry": [
                {"resource": {"resourceType": "Observation", "subject": {"reference": "Patient/3"}}},
                {"fullUrl": "urn:uuid:a", "resource": {"resourceType": "Patient", "id": "a"}},
                {"fullUrl": "urn:uuid:b", "resource": {"resourceType": "Patient", "id": "b"}},
            ],
        }

        actual = extract(bundle)

        assert actual.resource == {"resourceType": "Patient", "id": "a"}

    def test_nested_references_are_found(self) -> None:
        bundle: Bundle = {
            "resourceType": "Bundle",
            "entry": [
                {
                    "resource": {
                        "resourceType": "Encounter",
                        "participant": [{"individual": {"reference": "Practitioner/1"}}],
                        "diagnosis": [{"condition": {"reference": "Condition/7"}}],
                    }
                },
                {
                    "resource": {
                        "resourceType": "Observation",
                        "performer": [{"reference": "Patient/55"}],
                    }
                },
            ],
        }

        actual = extract(bundle)

        assert actual.reference_id == "55"

    def test_absolute_and_contained_patient_paths_are_not_patient_references(
        self,
    ) -> None:
        bundle: Bundle = {
            "resourceType": "Bundle",
            "entry": [
                {
                    "resource": {
                        "resourceType": "Encounter",
                        "subject": {"reference": "http://elsewhere/fhir/Patient/9"},
                        "basedOn": [{"reference": "Patient/9/_history/2"}],
                    }
                }
            ],
        }

        assert not extract(bundle).found


def test_entry_key_prefers_full_url() -> None:
    entry: Any = {"fullUrl": "urn:uuid:1", "resource": {"resourceType": "Patient", "id": "x"}}

    assert entry_key(entry) == "urn:uuid:1"


def test_entry_key_falls_back_to_resource_id() -> None:
    entry: Any = {"resource": {"resourceType": "Patient", "id": "x"}}

    assert entry_key(entry) == "Patient/x"


def test_iter_references_walks_depth_first() -> None:
    node = {
        "subject": {"reference": "Patient/1"},
        "items": [{"reference": "Observation/2"}, {"nested": {"reference": "Device/3"}}],
        "reference": 4,
    }

    assert list(iter_references(node)) == ["Patient/1", "Observation/2", "Device/3"]

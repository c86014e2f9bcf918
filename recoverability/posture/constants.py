"""Advisory finding categories and compliance framework citations."""

from enum import Enum


class FindingCategory(str, Enum):
    """Categories of advisory findings, one per rule."""

    COVERAGE_GAP = "Coverage Gap"
    RECOVERY_FAILURE = "Recovery Failure"
    SLA_VIOLATION = "SLA Violation"
    STALE_EVIDENCE = "Stale Evidence"
    MEASUREMENT_GAP = "Measurement Gap"
    SINGLE_PLATFORM = "Single-Platform Coverage"
    POSITIVE_PASS_RATE = "Strong Recoverability"
    POSITIVE_RTO = "RTO Compliance"


# Clauses each finding category maps to in the evidence handed to auditors
FRAMEWORK_CITATIONS: dict[FindingCategory, str] = {
    FindingCategory.COVERAGE_GAP: "SOC2 A1.2, ISO 27001 A.8.13, NIS2 Art 21(2)(c), DORA Art 12(1)",
    FindingCategory.RECOVERY_FAILURE: "SOC2 A1.3, ISO 27001 A.5.30, NIS2 Art 21(2)(c), DORA Art 12(2)",
    FindingCategory.SLA_VIOLATION: "SOC2 A1.3, ISO 27001 A.5.30, NIS2 Art 21(2)(c), DORA Art 11(6)",
    FindingCategory.STALE_EVIDENCE: "SOC2 A1.3, ISO 27001 A.8.13, DORA Art 12(2)",
    FindingCategory.MEASUREMENT_GAP: "SOC2 A1.2, ISO 27001 A.5.30, DORA Art 11(6)",
    FindingCategory.SINGLE_PLATFORM: "ISO 27001 A.8.14, DORA Art 12(3)",
    FindingCategory.POSITIVE_PASS_RATE: "SOC2 A1.3, ISO 27001 A.8.13",
    FindingCategory.POSITIVE_RTO: "SOC2 A1.3, ISO 27001 A.5.30, DORA Art 11(6)",
}

"""Reference data: the DOH core standards catalog (DOH-UAE-2024, V2.1/2024).

This is the encoded regulatory knowledge the engine validates against.
Plain data only; `loader.build_reference_catalog()` turns it into a model.
"""

# ──────────────────────────────────────────────────────────────────────
# RULE NAMES
# ──────────────────────────────────────────────────────────────────────

AUTOMATED_CHECKS: list[str] = [
    "required_field",
    "timestamp_validation",
    "completeness_check",
]

MANUAL_CHECKS: list[str] = [
    "clinical_judgment",
    "quality_review",
    "peer_assessment",
]

# Fields `completeness_check` insists on, in the order they are reported
REQUIRED_CLINICAL_FIELDS: tuple[str, ...] = (
    "patientId",
    "assessmentDate",
    "clinicalFindings",
)


# ──────────────────────────────────────────────────────────────────────
# SCORING CONSTANTS
# ──────────────────────────────────────────────────────────────────────

REQUIREMENT_MAX_SCORE = 20

# Domain below this percentage is told to aim for excellence
DOMAIN_EXCELLENCE_TARGET = 90

# Domain below this (and above the critical threshold) gets a short-term action
DOMAIN_SHORT_TERM_TARGET = 80

BEST_PRACTICES: list[str] = [
    "Regular compliance monitoring and auditing",
    "Continuous staff education and training",
    "Implementation of quality improvement initiatives",
]

CRITICAL_FINDING_IMMEDIATE_ACTIONS: list[str] = [
    "Complete missing requirement",
    "Document compliance",
    "Notify supervisor",
]

CRITICAL_FINDING_PREVENTIVE_MEASURES: list[str] = [
    "Implement checklist",
    "Staff training",
    "Regular audits",
]

CORRECTIVE_ACTION_DUE_HOURS = 24


# ──────────────────────────────────────────────────────────────────────
# CORE STANDARDS CATALOG
# ──────────────────────────────────────────────────────────────────────

DOH_CORE_STANDARDS: dict = {
    "standardId": "DOH-UAE-2024",
    "version": "V2.1/2024",
    "effectiveDate": "2024-01-01",
    "domains": {
        "clinical_care": [
            {
                "id": "CC-001",
                "title": "Clinical Assessment Documentation",
                "description": "All clinical assessments must be documented within 24 hours",
                "mandatory": True,
                "validationRules": ["required_field", "timestamp_validation", "completeness_check"],
                "evidenceRequired": ["assessment_form", "clinical_notes", "vital_signs"],
            },
            {
                "id": "CC-002",
                "title": "Care Plan Development",
                "description": "Individualized care plans must be developed for all patients",
                "mandatory": True,
                "validationRules": ["care_plan_exists", "individualized_content", "goal_setting"],
                "evidenceRequired": ["care_plan_document", "patient_goals", "intervention_plan"],
            },
        ],
        "patient_safety": [
            {
                "id": "PS-001",
                "title": "Risk Assessment",
                "description": "Patient safety risk assessment must be conducted and documented",
                "mandatory": True,
                "validationRules": ["risk_assessment_complete", "risk_level_identified", "mitigation_plan"],
                "evidenceRequired": ["risk_assessment_form", "safety_plan", "monitoring_schedule"],
            },
        ],
        "infection_control": [
            {
                "id": "IC-001",
                "title": "Infection Prevention Protocols",
                "description": "Infection control measures must be implemented and documented",
                "mandatory": True,
                "validationRules": ["protocol_followed", "documentation_complete", "compliance_verified"],
                "evidenceRequired": ["infection_control_checklist", "compliance_record", "training_evidence"],
            },
        ],
        "medication_management": [
            {
                "id": "MM-001",
                "title": "Medication Reconciliation",
                "description": "Medication reconciliation must be performed and documented",
                "mandatory": True,
                "validationRules": ["reconciliation_complete", "discrepancies_resolved", "physician_review"],
                "evidenceRequired": ["medication_list", "reconciliation_form", "physician_signature"],
            },
        ],
        "documentation_standards": [
            {
                "id": "DS-001",
                "title": "Documentation Completeness",
                "description": "All required documentation must be complete and accurate",
                "mandatory": True,
                "validationRules": ["all_fields_complete", "accuracy_verified", "timely_documentation"],
                "evidenceRequired": ["completed_forms", "verification_signatures", "timestamp_records"],
            },
        ],
        "continuity_of_care": [
            {
                "id": "COC-001",
                "title": "Care Coordination",
                "description": "Care coordination between providers must be documented",
                "mandatory": True,
                "validationRules": ["coordination_documented", "communication_recorded", "handoff_complete"],
                "evidenceRequired": ["coordination_notes", "communication_log", "handoff_checklist"],
            },
        ],
        "patient_rights": [
            {
                "id": "PR-001",
                "title": "Informed Consent",
                "description": "Patient informed consent must be obtained and documented",
                "mandatory": True,
                "validationRules": ["consent_obtained", "patient_understanding", "documentation_complete"],
                "evidenceRequired": ["consent_form", "patient_signature", "witness_signature"],
            },
        ],
        "quality_improvement": [
            {
                "id": "QI-001",
                "title": "Quality Metrics Tracking",
                "description": "Quality improvement metrics must be tracked and reported",
                "mandatory": True,
                "validationRules": ["metrics_defined", "data_collected", "analysis_performed"],
                "evidenceRequired": ["quality_metrics", "data_reports", "improvement_plans"],
            },
        ],
        "professional_development": [
            {
                "id": "PD-001",
                "title": "Staff Competency Verification",
                "description": "Staff competency must be verified and documented",
                "mandatory": True,
                "validationRules": ["competency_assessed", "training_completed", "certification_current"],
                "evidenceRequired": ["competency_assessment", "training_records", "certification_documents"],
            },
        ],
    },
    "complianceThresholds": {
        "excellent": 95,
        "good": 85,
        "satisfactory": 75,
        "needsImprovement": 60,
        "critical": 60,
    },
    "domainWeights": {
        "clinical_care": 0.25,
        "patient_safety": 0.20,
        "infection_control": 0.15,
        "medication_management": 0.15,
        "documentation_standards": 0.10,
        "continuity_of_care": 0.05,
        "patient_rights": 0.05,
        "quality_improvement": 0.03,
        "professional_development": 0.02,
    },
    "validationEngine": {
        "engineVersion": "2.1.0",
        "rulesEngine": "DOH-Compliance-Engine",
        "automatedChecks": AUTOMATED_CHECKS,
        "manualChecks": MANUAL_CHECKS,
    },
}

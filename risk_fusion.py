#!/usr/bin/env python
"""
Cardiovascular Risk Fusion Module
Rule-based scoring that combines ECG-derived metrics with a clinical profile.
"""

import numpy as np
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field, asdict
from enum import Enum

from ecg_detection import PeakDetectionResult
from advanced_analysis import HRVAnalyzer, RhythmClassification
from ecg_constants import (
    FUSION_WEIGHTS_DEFAULT,
    FUSION_WEIGHTS_LIVE,
    FUSION_WEIGHTS_LOW_CONFIDENCE,
    FUSION_LOW_CONFIDENCE_PERCENT,
    FUSION_DOMINANT_SCORE,
    FUSION_DOMINANT_FLOOR,
    RISK_HIGH_THRESHOLD,
    RISK_MODERATE_THRESHOLD,
    CLINICAL_DATA_CONFIDENCE_PERCENT,
    MAX_RECOMMENDATIONS,
    QTC_PROLONGED_S,
    QRS_PROLONGED_S,
)


class RiskLevel(Enum):
    """Final risk category."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass
class ECGMetrics:
    """ECG-derived measurements fed to the risk model."""
    heart_rate: float  # bpm, 0 means "not yet known"
    rr_interval: float  # mean RR in seconds
    heart_rate_min: Optional[float] = None
    heart_rate_max: Optional[float] = None
    qrs_duration: Optional[float] = None  # seconds
    qt_interval: Optional[float] = None  # seconds
    hrv_sdnn: Optional[float] = None  # ms
    hrv_rmssd: Optional[float] = None  # ms


@dataclass
class ECGClassification:
    """Rhythm label and its confidence (percent)."""
    label: str
    confidence: float


@dataclass
class ClinicalProfile:
    """Static patient risk profile; unknown fields stay None."""
    age: Optional[int] = None
    bmi: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    cholesterol_total: Optional[float] = None  # mg/dL
    cholesterol_hdl: Optional[float] = None  # mg/dL
    cholesterol_ldl: Optional[float] = None  # mg/dL
    fasting_blood_sugar: Optional[float] = None  # mg/dL
    smoking_status: Optional[str] = None  # "never", "former", "current"
    exercise_frequency: Optional[str] = None  # "sedentary" ... "very_active"
    family_heart_disease: bool = False
    diabetes_status: Optional[str] = None  # "none", "prediabetic", "type1", "type2"
    health_conditions: List[str] = None

    def __post_init__(self):
        if self.health_conditions is None:
            self.health_conditions = []


@dataclass
class RiskAssessment:
    """Outcome of one risk fusion run."""
    final_risk_level: RiskLevel
    ecg_risk_score: int
    clinical_risk_score: int
    fused_risk_score: int
    risk_factors: List[str] = field(default_factory=list)
    protective_factors: List[str] = field(default_factory=list)
    confidence: int = 0  # percent
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['final_risk_level'] = self.final_risk_level.value
        return result


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


class RiskFusionEngine:
    """
    Combine ECG risk and clinical risk into one 0-100 score.

    Scores are additive rule sets. The two partial scores are blended with
    weights that favour ECG data during live monitoring and favour the
    clinical profile when the rhythm classification is uncertain.
    """

    ABNORMAL_PATTERNS = ['Atrial Fibrillation', 'Ventricular Tachycardia', 'AV Block', 'ST Elevation']

    RECOMMENDATION_RULES = [
        (('hypertension',), 'Monitor blood pressure regularly and follow prescribed medication'),
        (('cholesterol',), 'Consider dietary modifications to improve cholesterol levels'),
        (('sedentary',), 'Aim for at least 150 minutes of moderate exercise per week'),
        (('smoker',), 'Smoking cessation can significantly reduce cardiovascular risk'),
        (('bmi', 'obesity'), 'Weight management through diet and exercise may improve heart health'),
        (('glucose', 'diabet'), 'Maintain blood sugar control through diet, exercise, and medication'),
    ]

    def assess(self,
               ecg_metrics: ECGMetrics,
               classification: ECGClassification,
               profile: ClinicalProfile,
               is_live_monitoring: bool = False) -> RiskAssessment:
        """
        Full risk assessment.

        Args:
            ecg_metrics: Measurements from the detection pipeline
            classification: Rhythm label with confidence in percent
            profile: Clinical risk profile
            is_live_monitoring: True while a live session is running

        Returns:
            RiskAssessment
        """
        ecg_score, ecg_factors = self.calculate_ecg_risk(ecg_metrics, classification)
        clinical_score, clinical_factors, protective = self.calculate_clinical_risk(profile)

        fused_score, alpha, beta = self.fuse_risks(ecg_score, clinical_score,
                                                   is_live_monitoring, classification.confidence)

        risk_level = self.classify_risk(fused_score)
        all_factors = ecg_factors + clinical_factors

        return RiskAssessment(
            final_risk_level=risk_level,
            ecg_risk_score=_round_half_up(ecg_score),
            clinical_risk_score=_round_half_up(clinical_score),
            fused_risk_score=_round_half_up(fused_score),
            risk_factors=all_factors,
            protective_factors=protective,
            confidence=_round_half_up(classification.confidence * alpha +
                                      CLINICAL_DATA_CONFIDENCE_PERCENT * beta),
            recommendations=self.generate_recommendations(risk_level, all_factors)
        )

    def calculate_ecg_risk(self, metrics: ECGMetrics,
                           classification: ECGClassification) -> Tuple[float, List[str]]:
        """ECG risk score (0-100) and the factors that raised it."""
        score = 0.0
        factors = []

        # Heart rate (0 bpm is "acquiring", not bradycardia)
        hr = metrics.heart_rate
        if 0 < hr < 50:
            score += 25
            factors.append('Bradycardia detected (HR < 50 BPM)')
        elif hr > 120:
            score += 35
            factors.append('Significant tachycardia (HR > 120 BPM)')
        elif hr > 100:
            score += 20
            factors.append('Tachycardia detected (HR > 100 BPM)')

        # Low HRV means higher risk
        if metrics.hrv_sdnn is not None:
            if metrics.hrv_sdnn < 20:
                score += 20
                factors.append('Very low heart rate variability')
            elif metrics.hrv_sdnn < 50:
                score += 10
                factors.append('Reduced heart rate variability')

        if metrics.qrs_duration is not None and metrics.qrs_duration > QRS_PROLONGED_S:
            score += 15
            factors.append('Prolonged QRS duration')

        # Bazett correction
        if metrics.qt_interval is not None and metrics.rr_interval > 0:
            qtc = metrics.qt_interval / np.sqrt(metrics.rr_interval)
            if qtc > QTC_PROLONGED_S:
                score += 20
                factors.append('Prolonged QTc interval')

        label = classification.label.lower()
        if any(pattern.lower() in label for pattern in self.ABNORMAL_PATTERNS):
            score += 30 * (classification.confidence / 100)
            factors.append(f'Detected rhythm: {classification.label}')

        if classification.confidence < FUSION_LOW_CONFIDENCE_PERCENT:
            score *= 0.8

        return min(score, 100.0), factors

    def calculate_clinical_risk(self, profile: ClinicalProfile) -> Tuple[float, List[str], List[str]]:
        """Framingham-like clinical score (0-100), risk factors and protective factors."""
        score = 0.0
        factors = []
        protective = []

        if profile.age:
            if profile.age >= 65:
                score += 20
                factors.append('Age ≥ 65 years')
            elif profile.age >= 55:
                score += 15
                factors.append('Age 55-64 years')
            elif profile.age >= 45:
                score += 10
                factors.append('Age 45-54 years')

        if profile.bmi:
            if profile.bmi >= 35:
                score += 15
                factors.append('Severe obesity (BMI ≥ 35)')
            elif profile.bmi >= 30:
                score += 10
                factors.append('Obesity (BMI 30-35)')
            elif profile.bmi >= 25:
                score += 5
                factors.append('Overweight (BMI 25-30)')
            elif profile.bmi >= 18.5:
                protective.append('Healthy BMI')

        if profile.blood_pressure_systolic:
            sbp = profile.blood_pressure_systolic
            if sbp >= 180:
                score += 25
                factors.append('Hypertensive crisis (SBP ≥ 180)')
            elif sbp >= 140:
                score += 15
                factors.append('Stage 2 hypertension')
            elif sbp >= 130:
                score += 10
                factors.append('Stage 1 hypertension')
            elif sbp < 120:
                protective.append('Normal blood pressure')

        if profile.cholesterol_total:
            if profile.cholesterol_total >= 240:
                score += 15
                factors.append('High total cholesterol')
            elif profile.cholesterol_total >= 200:
                score += 8
                factors.append('Borderline high cholesterol')

        if profile.cholesterol_hdl:
            if profile.cholesterol_hdl < 40:
                score += 10
                factors.append('Low HDL cholesterol')
            elif profile.cholesterol_hdl >= 60:
                score -= 5
                protective.append('High HDL cholesterol')

        if profile.fasting_blood_sugar:
            if profile.fasting_blood_sugar >= 126:
                score += 15
                factors.append('Diabetic fasting glucose')
            elif profile.fasting_blood_sugar >= 100:
                score += 8
                factors.append('Prediabetic fasting glucose')

        if profile.diabetes_status in ('type1', 'type2'):
            score += 15
            factors.append('Diabetes diagnosis')
        elif profile.diabetes_status == 'prediabetic':
            score += 8
            factors.append('Prediabetes')

        if profile.smoking_status == 'current':
            score += 20
            factors.append('Current smoker')
        elif profile.smoking_status == 'former':
            score += 5
            factors.append('Former smoker')
        elif profile.smoking_status == 'never':
            protective.append('Never smoked')

        if profile.exercise_frequency == 'sedentary':
            score += 10
            factors.append('Sedentary lifestyle')
        elif profile.exercise_frequency in ('active', 'very_active'):
            score -= 10
            protective.append('Active lifestyle')

        if profile.family_heart_disease:
            score += 15
            factors.append('Family history of heart disease')

        conditions = ' '.join(profile.health_conditions).lower()
        if 'hypertension' in conditions:
            score += 10
            factors.append('History of hypertension')
        if 'arrhythmia' in conditions:
            score += 15
            factors.append('History of arrhythmia')

        return max(0.0, min(score, 100.0)), factors, protective

    def fuse_risks(self,
                   ecg_risk: float,
                   clinical_risk: float,
                   is_live_monitoring: bool,
                   ecg_confidence: float) -> Tuple[float, float, float]:
        """
        Weighted blend of the two scores.

        Returns:
            Tuple of (fused_score, alpha, beta) where alpha weights ECG risk
        """
        alpha, beta = FUSION_WEIGHTS_DEFAULT
        if is_live_monitoring:
            alpha, beta = FUSION_WEIGHTS_LIVE
        if ecg_confidence < FUSION_LOW_CONFIDENCE_PERCENT:
            alpha, beta = FUSION_WEIGHTS_LOW_CONFIDENCE

        fused_score = alpha * ecg_risk + beta * clinical_risk

        # A very high partial score is never diluted by a low one
        if ecg_risk > FUSION_DOMINANT_SCORE or clinical_risk > FUSION_DOMINANT_SCORE:
            fused_score = max(fused_score, FUSION_DOMINANT_FLOOR * max(ecg_risk, clinical_risk))

        return fused_score, alpha, beta

    def classify_risk(self, fused_score: float) -> RiskLevel:
        if fused_score >= RISK_HIGH_THRESHOLD:
            return RiskLevel.HIGH
        elif fused_score >= RISK_MODERATE_THRESHOLD:
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    def generate_recommendations(self, risk_level: RiskLevel, factors: List[str]) -> List[str]:
        """Advice derived from the risk level and matched factors, at most MAX_RECOMMENDATIONS."""
        recommendations = []

        if risk_level == RiskLevel.HIGH:
            recommendations.append('Consider consulting a cardiologist for comprehensive evaluation')
            recommendations.append('Continue monitoring and document any symptoms')

        lowered = [f.lower() for f in factors]
        for keywords, advice in self.RECOMMENDATION_RULES:
            if any(k in f for f in lowered for k in keywords):
                recommendations.append(advice)

        if not recommendations:
            recommendations.append('Maintain your healthy lifestyle habits')
            recommendations.append('Continue regular health check-ups')

        return recommendations[:MAX_RECOMMENDATIONS]


# Convenience functions
def metrics_from_detection(result: PeakDetectionResult,
                           qrs_duration: Optional[float] = None,
                           qt_interval: Optional[float] = None) -> ECGMetrics:
    """Build ECGMetrics from a detection result, with HRV when enough intervals exist."""
    rr = result.rr_intervals
    hrv = HRVAnalyzer().analyze_hrv(rr)

    return ECGMetrics(
        heart_rate=result.avg_hr,
        rr_interval=float(np.mean(rr)) if rr else 0.0,
        heart_rate_min=60.0 / max(rr) if rr else None,
        heart_rate_max=60.0 / min(rr) if rr else None,
        qrs_duration=qrs_duration,
        qt_interval=qt_interval,
        hrv_sdnn=hrv.sdnn if hrv else None,
        hrv_rmssd=hrv.rmssd if hrv else None
    )


def classification_from_rhythm(rhythm: RhythmClassification) -> ECGClassification:
    """Convert a rate-based rhythm classification (confidence 0-1) to percent form."""
    return ECGClassification(label=rhythm.label, confidence=rhythm.confidence * 100)


def assess_risk(ecg_metrics: ECGMetrics,
                classification: ECGClassification,
                profile: ClinicalProfile,
                is_live_monitoring: bool = False) -> RiskAssessment:
    """Quick risk assessment with the default engine."""
    return RiskFusionEngine().assess(ecg_metrics, classification, profile, is_live_monitoring)


if __name__ == "__main__":
    from examples.generate_ecg_data import ECGGenerator
    from realtime_detection import detect_peaks
    from advanced_analysis import RhythmClassifier

    gen = ECGGenerator()
    samples, metadata = gen.generate_normal_sinus_rhythm(duration=30, heart_rate=72)
    result = detect_peaks(samples, metadata['sample_rate'])

    metrics = metrics_from_detection(result)
    classification = classification_from_rhythm(RhythmClassifier().classify(result.avg_hr))
    profile = ClinicalProfile(age=58, bmi=27.5, blood_pressure_systolic=142,
                              smoking_status='former', exercise_frequency='sedentary')

    assessment = assess_risk(metrics, classification, profile)
    print(f"Risk level: {assessment.final_risk_level.value} ({assessment.fused_risk_score}/100)")
    for recommendation in assessment.recommendations:
        print(f"  - {recommendation}")

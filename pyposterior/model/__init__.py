"""
ModelSpec: declarative statistical models.

Public API:
    Parameter                 declared parameter with support
    ModelSpec                 parameters + log density (+ generated, simulate)
    normal_model              conjugate normal mean (closed-form evidence)
    poisson_goals_model       match-score model, pooled or fixed team effects
    ar1_mixed_model           repeated measures, random intercept, AR(1) residuals
    ou_student_t_model        hierarchical Ornstein-Uhlenbeck, Student-t noise
    one_compartment_pk_model  hierarchical oral-dose PK ODE model
"""

from pyposterior.model.spec import ModelSpec, Parameter, ModelParameters
from pyposterior.model._normal import normal_model, normal_log_marginal
from pyposterior.model._poisson import poisson_goals_model
from pyposterior.model._ar1 import ar1_mixed_model, ar1_covariance
from pyposterior.model._ou import ou_student_t_model
from pyposterior.model._pk import one_compartment_pk_model, concentration

__all__ = [
    "ModelSpec",
    "Parameter",
    "ModelParameters",
    "normal_model",
    "normal_log_marginal",
    "poisson_goals_model",
    "ar1_mixed_model",
    "ar1_covariance",
    "ou_student_t_model",
    "one_compartment_pk_model",
    "concentration",
]

from .auxiliary_variable import AuxiliaryVariable
from .dirichlet_distribution_family import DirichletDistributionFamily
from .dirichlet_process_family import DirichletProcessFamily
from .stick_breaking_process import StickBreakingProcess
from .variable import Variable

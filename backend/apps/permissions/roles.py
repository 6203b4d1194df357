from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "admin", "Administrador"
    FINANCIAL_MANAGER = "financial_manager", "Gerente Financeiro"
    APPROVER = "approver", "Aprovador"
    RELEASER = "releaser", "Pagador/Baixador"
    AUDITOR = "auditor", "Auditor"
    USER = "user", "Usuário"


ROLE_DESCRIPTIONS = {
    UserRole.ADMIN: "Acesso total ao sistema, incluindo usuários, empresas e configurações.",
    UserRole.FINANCIAL_MANAGER: "Gerencia lançamentos, centros de custo, cadastros, lotes e recorrências.",
    UserRole.APPROVER: "Aprova ou rejeita lançamentos e lotes de pagamento.",
    UserRole.RELEASER: "Autoriza e executa pagamentos (baixa de lançamentos).",
    UserRole.AUDITOR: "Consulta lançamentos, relatórios e logs de auditoria, sem alterar dados.",
    UserRole.USER: "Cria solicitações de pagamento e consulta os próprios lançamentos.",
}

# backend/app/core/i18n.py
"""
Static translation tables.

Lookups fall back to the default language and then to the key itself, so a
missing entry never breaks a response.
"""

from typing import Any, Dict

DEFAULT_LANGUAGE = "pt"

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "pt": {
        # Scan status labels
        "status.analyzing": "Analisando...",
        "status.failed": "Falhou",
        "status.safe": "Seguro",
        "status.warning": "Atenção",
        "status.danger": "Risco Alto",
        "status.processing": "Processando",

        # Completion notifications
        "notify.critical.one": "{count} vulnerabilidade crítica detectada!",
        "notify.critical.other": "{count} vulnerabilidades críticas detectadas!",
        "notify.critical.title": "Alerta de Segurança Crítico",
        "notify.critical.description": "Clique no relatório para ver os detalhes.",
        "notify.critical.os_body": "{message} Verifique o relatório imediatamente.",
        "notify.warning.one": "Scan concluído: {count} problema encontrado",
        "notify.warning.other": "Scan concluído: {count} problemas encontrados",
        "notify.warning.description": "Verifique o relatório para mais informações.",
        "notify.success": "Scan concluído com sucesso!",
        "notify.success.description": "Nenhuma vulnerabilidade detectada.",
        "notify.completed_prefix": "Scan concluído: {message}",

        # Scan request validation
        "scan.input_required": "Por favor, forneça uma URL, arquivo ou repositório para escanear",
        "scan.invalid_url": "URL inválida",
        "scan.url_too_long": "URL muito longa",
        "scan.url_scheme": "Apenas protocolos HTTP e HTTPS são permitidos",
        "scan.file_too_large": "Arquivo muito grande. Tamanho máximo: {max_mb}MB",
        "scan.unsupported_file": "Tipo de arquivo não suportado. Use arquivos de código-fonte, configuração ou scripts.",
        "scan.invalid_github": "URL do GitHub inválida. Use o formato: https://github.com/usuario/repositorio",
        "scan.github_pro_only": "A análise de repositórios GitHub é exclusiva do plano PRO.",
        "scan.quota_exceeded": "Limite de {limit} scans gratuitos por mês atingido. Faça upgrade para continuar.",
        "scan.pdf_pro_only": "A exportação em PDF é exclusiva do plano PRO.",
        "scan.not_completed": "O relatório estará disponível quando a análise for concluída.",
        "scan.confirmation_required": "Confirme a análise antes de iniciá-la.",
        "scan.started": "Análise de segurança iniciada! Aguarde a conclusão...",

        # Code validation
        "code.required": "Por favor, insira um código válido.",
        "code.not_found": "Código não encontrado.",
        "code.wrong_kind.discount": "Este código não é um código de desconto.",
        "code.wrong_kind.plan": "Este código não pode ser resgatado aqui. Use códigos de desconto na página de pagamento.",
        "code.already_used": "Este código já foi utilizado.",
        "code.internal": "Erro ao validar o código. Tente novamente.",
        "redeem.success": "Você ganhou {value} {unit} de acesso PRO!",
        "unit.days": "dias",
        "unit.months": "meses",
        "unit.years": "anos",

        # Checkout
        "checkout.invalid_return_url": "URL de retorno inválida",
        "checkout.invalid_price": "Plano inválido",
        "checkout.failed": "Erro ao iniciar checkout. Tente novamente.",

        # Admin
        "admin.pro_on": "Modo PRO ativado",
        "admin.pro_off": "Modo PRO desativado",
        "admin.required": "Acesso restrito a administradores",

        # Generic errors
        "error.validation": "Dados inválidos",
        "error.unauthorized": "Autenticação necessária",
        "error.forbidden": "Você não tem permissão para realizar esta ação.",
        "error.not_owner": "Você não tem permissão para modificar este scan.",
        "error.upgrade_required": "Recurso disponível apenas no plano PRO.",
        "error.not_found": "Não encontrado",
        "error.invalid_transition": "Este scan já foi finalizado.",
        "error.upstream": "Serviço temporariamente indisponível. Tente novamente em instantes.",
        "error.invalid_signature": "Assinatura inválida",
        "error.internal": "Erro interno",
    },
    "en": {
        "status.analyzing": "Analyzing...",
        "status.failed": "Failed",
        "status.safe": "Safe",
        "status.warning": "Warning",
        "status.danger": "High Risk",
        "status.processing": "Processing",

        "notify.critical.one": "{count} critical vulnerability detected!",
        "notify.critical.other": "{count} critical vulnerabilities detected!",
        "notify.critical.title": "Critical Security Alert",
        "notify.critical.description": "Open the report to see the details.",
        "notify.critical.os_body": "{message} Check the report immediately.",
        "notify.warning.one": "Scan completed: {count} issue found",
        "notify.warning.other": "Scan completed: {count} issues found",
        "notify.warning.description": "Check the report for more information.",
        "notify.success": "Scan completed successfully!",
        "notify.success.description": "No vulnerabilities detected.",
        "notify.completed_prefix": "Scan completed: {message}",

        "scan.input_required": "Please provide a URL, file or repository to scan",
        "scan.invalid_url": "Invalid URL",
        "scan.url_too_long": "URL too long",
        "scan.url_scheme": "Only HTTP and HTTPS URLs are allowed",
        "scan.file_too_large": "File too large. Maximum size: {max_mb}MB",
        "scan.unsupported_file": "Unsupported file type. Use source code, configuration or script files.",
        "scan.invalid_github": "Invalid GitHub URL. Use the format: https://github.com/user/repository",
        "scan.github_pro_only": "GitHub repository scanning is a PRO feature.",
        "scan.quota_exceeded": "You reached the limit of {limit} free scans per month. Upgrade to continue.",
        "scan.pdf_pro_only": "PDF export is a PRO feature.",
        "scan.not_completed": "The report will be available once the analysis completes.",
        "scan.confirmation_required": "Confirm the analysis before starting it.",
        "scan.started": "Security analysis started! Please wait for it to finish...",

        "code.required": "Please enter a valid code.",
        "code.not_found": "Code not found.",
        "code.wrong_kind.discount": "This is not a discount code.",
        "code.wrong_kind.plan": "This code cannot be redeemed here. Use discount codes on the checkout page.",
        "code.already_used": "This code has already been used.",
        "code.internal": "Could not validate the code. Please try again.",
        "redeem.success": "You earned {value} {unit} of PRO access!",
        "unit.days": "days",
        "unit.months": "months",
        "unit.years": "years",

        "checkout.invalid_return_url": "Invalid return URL",
        "checkout.invalid_price": "Invalid plan",
        "checkout.failed": "Could not start checkout. Please try again.",

        "admin.pro_on": "PRO mode activated",
        "admin.pro_off": "PRO mode deactivated",
        "admin.required": "Admin role required",

        "error.validation": "Invalid input",
        "error.unauthorized": "Authentication required",
        "error.forbidden": "You don't have permission to perform this action.",
        "error.not_owner": "You do not have permission to modify this scan.",
        "error.upgrade_required": "This feature is available on the PRO plan only.",
        "error.not_found": "Not found",
        "error.invalid_transition": "This scan has already finished.",
        "error.upstream": "Service temporarily unavailable. Please try again shortly.",
        "error.invalid_signature": "Invalid signature",
        "error.internal": "Internal server error",
    },
    "de": {
        "status.analyzing": "Wird analysiert...",
        "status.failed": "Fehlgeschlagen",
        "status.safe": "Sicher",
        "status.warning": "Achtung",
        "status.danger": "Hohes Risiko",
        "status.processing": "In Bearbeitung",

        "notify.critical.one": "{count} kritische Schwachstelle gefunden!",
        "notify.critical.other": "{count} kritische Schwachstellen gefunden!",
        "notify.critical.title": "Kritische Sicherheitswarnung",
        "notify.warning.one": "Scan abgeschlossen: {count} Problem gefunden",
        "notify.warning.other": "Scan abgeschlossen: {count} Probleme gefunden",
        "notify.success": "Scan erfolgreich abgeschlossen!",
        "notify.success.description": "Keine Schwachstellen gefunden.",
        "notify.completed_prefix": "Scan abgeschlossen: {message}",

        "scan.invalid_url": "Ungültige URL",
        "scan.url_too_long": "URL zu lang",
        "scan.file_too_large": "Datei zu groß. Maximale Größe: {max_mb}MB",
        "scan.unsupported_file": "Nicht unterstützter Dateityp.",
        "scan.quota_exceeded": "Limit von {limit} kostenlosen Scans pro Monat erreicht. Bitte upgraden.",

        "code.required": "Bitte gib einen gültigen Code ein.",
        "code.not_found": "Code nicht gefunden.",
        "code.already_used": "Dieser Code wurde bereits verwendet.",

        "admin.pro_on": "PRO-Modus aktiviert",
        "admin.pro_off": "PRO-Modus deaktiviert",

        "error.unauthorized": "Anmeldung erforderlich",
        "error.upstream": "Dienst vorübergehend nicht verfügbar. Bitte versuche es später erneut.",
        "error.internal": "Interner Fehler",
    },
    "fr": {
        "status.analyzing": "Analyse en cours...",
        "status.failed": "Échec",
        "status.safe": "Sûr",
        "status.warning": "Attention",
        "status.danger": "Risque élevé",
        "status.processing": "En cours",

        "notify.critical.one": "{count} vulnérabilité critique détectée !",
        "notify.critical.other": "{count} vulnérabilités critiques détectées !",
        "notify.critical.title": "Alerte de sécurité critique",
        "notify.warning.one": "Scan terminé : {count} problème trouvé",
        "notify.warning.other": "Scan terminé : {count} problèmes trouvés",
        "notify.success": "Scan terminé avec succès !",
        "notify.success.description": "Aucune vulnérabilité détectée.",
        "notify.completed_prefix": "Scan terminé : {message}",

        "scan.invalid_url": "URL invalide",
        "scan.url_too_long": "URL trop longue",
        "scan.file_too_large": "Fichier trop volumineux. Taille maximale : {max_mb}MB",
        "scan.unsupported_file": "Type de fichier non supporté.",
        "scan.quota_exceeded": "Limite de {limit} scans gratuits par mois atteinte. Passez à PRO pour continuer.",

        "code.required": "Veuillez saisir un code valide.",
        "code.not_found": "Code introuvable.",
        "code.already_used": "Ce code a déjà été utilisé.",

        "admin.pro_on": "Mode PRO activé",
        "admin.pro_off": "Mode PRO désactivé",

        "error.unauthorized": "Authentification requise",
        "error.upstream": "Service temporairement indisponible. Réessayez dans quelques instants.",
        "error.internal": "Erreur interne",
    },
}


def translate(key: str, language: str = DEFAULT_LANGUAGE, **params: Any) -> str:
    text = (
        TRANSLATIONS.get(language, {}).get(key)
        or TRANSLATIONS[DEFAULT_LANGUAGE].get(key)
        or key
    )
    if params:
        try:
            return text.format(**params)
        except (KeyError, IndexError):
            return text
    return text


def translate_plural(key: str, count: int, language: str = DEFAULT_LANGUAGE, **params: Any) -> str:
    """Pick `<key>.one` or `<key>.other` by count"""
    suffix = "one" if count == 1 else "other"
    return translate(f"{key}.{suffix}", language, count=count, **params)


class Translator:
    """Translation lookups bound to one language"""

    def __init__(self, language: str = DEFAULT_LANGUAGE):
        self.language = language

    def __call__(self, key: str, **params: Any) -> str:
        return translate(key, self.language, **params)

    def plural(self, key: str, count: int, **params: Any) -> str:
        return translate_plural(key, count, self.language, **params)

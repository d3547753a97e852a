"""
Erreurs métier du checkout et de la réconciliation.
Chaque erreur porte un code stable et le statut HTTP renvoyé par l'API
(voir backend.app_setup.exceptions).
"""


class CheckoutError(Exception):
    status_code = 500

    def __init__(self, message: str, code: str = "checkout_error"):
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidCartError(CheckoutError):
    """Panier invalide côté client (jamais rejoué)."""
    status_code = 400

    def __init__(self, message: str = "Panier invalide", code: str = "invalid_cart"):
        super().__init__(message, code)


class GatewayUnavailableError(CheckoutError):
    """Échec réseau/fournisseur Stripe: le checkout entier peut être relancé."""
    status_code = 502

    def __init__(self, message: str = "Passerelle de paiement indisponible", code: str = "gateway_unavailable"):
        super().__init__(message, code)


class SessionNotPaidError(CheckoutError):
    """Confirmation demandée alors que la session n'est pas payée."""
    status_code = 422

    def __init__(self, payment_status: str = ""):
        super().__init__(f"Paiement non confirmé (payment_status={payment_status})", "session_not_paid")
        self.payment_status = payment_status


class MalformedMetadataError(CheckoutError):
    """Métadonnées de session illisibles: défaut d'intégrité, à investiguer."""
    status_code = 500

    def __init__(self, message: str = "Métadonnées de session invalides", code: str = "malformed_metadata"):
        super().__init__(message, code)


class ConflictError(CheckoutError):
    """Commande déjà enregistrée pour cette session (contrainte d'unicité)."""
    status_code = 409

    def __init__(self, session_id: str):
        super().__init__(f"Commande déjà enregistrée pour la session {session_id}", "already_reconciled")
        self.session_id = session_id


class SessionOwnershipError(CheckoutError):
    status_code = 403

    def __init__(self, message: str = "Session appartenant à un autre utilisateur"):
        super().__init__(message, "session_forbidden")

"""Localized user-facing messages (es, ca, en)."""

from __future__ import annotations

DEFAULT_LANGUAGE = 'es'

MESSAGES: dict[str, dict[str, str]] = {
    'es': {
        'notFound': 'No se ha encontrado el recurso solicitado',
        'forbidden': 'No tienes permisos para realizar esta acción',
        'unauthorized': 'Debes iniciar sesión para continuar',
        'validation': 'Revisa los campos del formulario',
        'storeUnavailable': 'El servicio no está disponible. Inténtalo más tarde',
        'unexpected': 'Se ha producido un error inesperado',
        'invalidCredentials': 'Email o contraseña incorrectos',
        'noActiveSeason': 'No hay ninguna temporada activa; no se ha creado el pago',
        'seasonExists': 'Ya existe una temporada para el año {year}',
        'invalidRecipients': 'Se requiere una lista válida de destinatarios',
        'missingFields': 'Faltan campos obligatorios: {fields}',
        'emailSent': 'Correo enviado correctamente',
        'bulkSent': 'Correos enviados correctamente a {count} destinatarios',
        'emailFailed': 'Error en el envío de los correos',
        'invalidType': 'Tipo de archivo no permitido',
        'tooLarge': 'El archivo supera el tamaño máximo de 5 MB',
        'noFile': 'No se ha proporcionado ningún archivo',
        'greeting': '¡Hola {name}! ¿En qué podemos ayudarte hoy?',
        'chatClosed': 'El chat está cerrado',
    },
    'ca': {
        'notFound': "No s'ha trobat el recurs sol·licitat",
        'forbidden': 'No tens permisos per a fer aquesta acció',
        'unauthorized': 'Has d\'iniciar sessió per a continuar',
        'validation': 'Revisa els camps del formulari',
        'storeUnavailable': 'El servei no està disponible. Torna-ho a provar més tard',
        'unexpected': "S'ha produït un error inesperat",
        'invalidCredentials': 'Correu o contrasenya incorrectes',
        'noActiveSeason': "No hi ha cap temporada activa; no s'ha creat el pagament",
        'seasonExists': "Ja existeix una temporada per a l'any {year}",
        'invalidRecipients': 'Cal una llista vàlida de destinataris',
        'missingFields': 'Falten camps obligatoris: {fields}',
        'emailSent': 'Correu enviat correctament',
        'bulkSent': 'Correus enviats correctament a {count} destinataris',
        'emailFailed': "Error en l'enviament dels correus",
        'invalidType': 'Tipus de fitxer no permés',
        'tooLarge': 'El fitxer supera la mida màxima de 5 MB',
        'noFile': "No s'ha proporcionat cap fitxer",
        'greeting': 'Hola {name}! En què et podem ajudar hui?',
        'chatClosed': 'El xat està tancat',
    },
    'en': {
        'notFound': 'The requested resource was not found',
        'forbidden': 'You are not allowed to perform this action',
        'unauthorized': 'Please log in to continue',
        'validation': 'Please review the form fields',
        'storeUnavailable': 'The service is unavailable. Please try again later',
        'unexpected': 'An unexpected error occurred',
        'invalidCredentials': 'Invalid email or password',
        'noActiveSeason': 'There is no active season; no payment was created',
        'seasonExists': 'A season for {year} already exists',
        'invalidRecipients': 'A valid list of recipients is required',
        'missingFields': 'Missing required fields: {fields}',
        'emailSent': 'Email sent successfully',
        'bulkSent': 'Emails sent successfully to {count} recipients',
        'emailFailed': 'Sending the emails failed',
        'invalidType': 'File type not allowed',
        'tooLarge': 'The file exceeds the 5 MB limit',
        'noFile': 'No file was provided',
        'greeting': 'Hi {name}! How can we help you today?',
        'chatClosed': 'The chat is closed',
    },
}


def translate(key: str, language: str | None = None, **params) -> str:
    """Look up ``key`` in ``language`` falling back to Spanish, then to the key itself."""
    catalog = MESSAGES.get(language or DEFAULT_LANGUAGE) or MESSAGES[DEFAULT_LANGUAGE]
    template = catalog.get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key, key)
    return template.format(**params) if params else template


__all__ = ['translate', 'MESSAGES', 'DEFAULT_LANGUAGE']

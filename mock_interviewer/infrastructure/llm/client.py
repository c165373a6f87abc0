"""
Vertex AI REST client for LLM interactions.
"""
import json
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS

logger = logging.getLogger("llm_client")

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class VertexRestClient:
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = f"projects/{self.project}/locations/{self.location}/publishers/google/models/{self.model}"
        self._token = None
        self.timeout = timeout

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        if self.credentials_json:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_json,
                scopes=SCOPES,
            )
        else:
            creds, _ = google.auth.default(scopes=SCOPES)

        auth_req = google.auth.transport.requests.Request()
        creds.refresh(auth_req)
        self._token = creds.token

    def _ensure_token(self):
        if not self._token:
            self._refresh_token()

    def generate(
        self,
        contents: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        response_mime_type: Optional[str] = None,
    ) -> str:
        """
        Run generateContent over a list of Vertex `contents` entries.

        Raises:
            RuntimeError: HTTP error from Vertex or a response without text
        """
        self._ensure_token()
        url = f"{self.base_url}/{self.model_resource}:generateContent"

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_output_tokens),
            },
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_mime_type:
            body["generationConfig"]["responseMimeType"] = response_mime_type

        resp = requests.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        if resp.status_code == 401:
            # Cached token expired; one retry with a fresh one
            logger.info("Vertex token rejected, refreshing")
            self._refresh_token()
            resp = requests.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        if resp.status_code >= 400:
            raise RuntimeError(f"Vertex REST error {resp.status_code}: {resp.text}")

        text = self._parse_response_text(resp.json())
        if text is None:
            raise RuntimeError(f"Vertex response carried no text: {json.dumps(resp.json())[:500]}")
        return text

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> Optional[str]:
        """
        Parse response JSON to extract text content.
        Tries Vertex schema first, then falls back to alternatives.
        """
        # Vertex schema: candidates[0].content.parts[*].text
        cands = resp_json.get("candidates") or []
        if cands and isinstance(cands[0], dict):
            content = cands[0].get("content") or {}
            parts = content.get("parts") or []
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
            if isinstance(content.get("text"), str):
                return content["text"]

        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]
        return None

    def generate_json(self, prompt: str) -> Dict[str, Any]:
        """
        Generate JSON response from LLM with defensive parsing.
        Automatically appends instruction to respond with JSON only.
        """
        prompt_json = prompt.strip() + "\n\nRespond ONLY with minified JSON."
        logger.debug("Sending JSON prompt to LLM...")

        text = self.generate(
            [{"role": "user", "parts": [{"text": prompt_json}]}],
            temperature=0.0,
            response_mime_type="application/json",
        )
        logger.debug("Raw LLM output: %s", repr(text))

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("json.loads failed: %s", e)
            start = text.find("{")
            end = text.rfind("}")
            if start != -1 and end > start:
                try:
                    return json.loads(text[start:end + 1])
                except json.JSONDecodeError as e2:
                    logger.warning("Substring parse also failed: %s", e2)

            raise ValueError(f"LLM did not return valid JSON: {text}")
